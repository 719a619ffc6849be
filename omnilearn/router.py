"""
Initial view resolution from query parameters.

Priority: admin secret (access), direct course id (c), short code (s),
then the configured default view. Unknown ids fall back to the default
course rather than surfacing an error.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from . import config
from .schemas import (
    AdminLoginView,
    CatalogView,
    Course,
    CourseDetailView,
    HomeView,
    SellerDashboardView,
    ViewState,
)

Resolver = Callable[[str], Awaitable[Optional[str]]]


@dataclass
class RouteResult:
    view: ViewState
    # the caller should drop the query string so a refresh does not re-route
    clear_query: bool = False


def default_view(variant: Optional[str] = None, default_course_id: Optional[str] = None) -> ViewState:
    variant = variant or config.DEFAULT_VIEW
    if variant == "home":
        return HomeView()
    if variant == "catalog":
        return CatalogView()
    return CourseDetailView(course_id=default_course_id or config.DEFAULT_COURSE_ID)


async def resolve_initial_view(
    params: Mapping[str, str],
    courses: Sequence[Course],
    admin_auth: bool,
    resolve_short_link: Resolver,
    access_secret: Optional[str] = None,
    variant: Optional[str] = None,
    default_course_id: Optional[str] = None,
) -> RouteResult:
    access_secret = config.ADMIN_ACCESS_SECRET if access_secret is None else access_secret
    fallback_id = default_course_id or config.DEFAULT_COURSE_ID
    known = {c.id for c in courses}

    if access_secret and params.get("access") == access_secret:
        return RouteResult(SellerDashboardView() if admin_auth else AdminLoginView())

    course_id = params.get("c")
    if course_id:
        if course_id in known:
            return RouteResult(CourseDetailView(course_id=course_id), clear_query=True)
        return RouteResult(CourseDetailView(course_id=fallback_id))

    code = params.get("s")
    if code:
        resolved = await resolve_short_link(code)
        if resolved and resolved in known:
            return RouteResult(CourseDetailView(course_id=resolved), clear_query=True)
        return RouteResult(CourseDetailView(course_id=fallback_id))

    return RouteResult(default_view(variant, fallback_id))


def course_for_view(view: ViewState, courses: Sequence[Course],
                    default_course_id: Optional[str] = None) -> Optional[Course]:
    """The course a COURSE_DETAIL view shows, falling back to the default course."""
    if not isinstance(view, CourseDetailView):
        return None
    by_id = {c.id: c for c in courses}
    return by_id.get(view.course_id) or by_id.get(default_course_id or config.DEFAULT_COURSE_ID)
