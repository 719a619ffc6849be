import hmac
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from . import advisor, config, dashboard, database, shortlinks
from .checkout import CheckoutConflict, CheckoutError, CheckoutFlow, record_transactions
from .payments import DEFAULT_MERCHANT, build_upi_links
from .router import course_for_view, resolve_initial_view
from .schemas import Coupon, Course, CourseDetailView, MerchantSettings
from .seed import sample_courses
from .session import Session

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await database.seed_initial_courses(sample_courses())
    yield


app = FastAPI(title="OmniLearn Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request bodies ---
class CartAdd(BaseModel):
    course_id: str


class ContactDetails(BaseModel):
    name: str
    email: str
    phone: str


class CouponCode(BaseModel):
    code: str


class PaymentSubmit(BaseModel):
    method: str


class ChatRequest(BaseModel):
    message: str
    history: List[advisor.ChatTurn] = []


class AdminLogin(BaseModel):
    email: str
    password: str


class ApprovalDecision(BaseModel):
    decision: str
    store_key: Optional[str] = None


def dump(record) -> dict:
    return record.model_dump(mode="json", by_alias=True)


# --- Dependencies ---
async def get_session(request: Request, response: Response) -> Session:
    sid = request.cookies.get(config.SESSION_COOKIE)
    if not sid:
        sid = uuid4().hex
        response.set_cookie(config.SESSION_COOKIE, sid, httponly=True, samesite="lax")
    return await Session.load(sid)


async def require_admin(session: Session = Depends(get_session)) -> Session:
    if not session.admin_auth:
        raise HTTPException(status_code=401, detail="Admin login required")
    return session


def current_checkout(session: Session) -> CheckoutFlow:
    if session.checkout is None:
        raise HTTPException(status_code=409, detail="No checkout in progress")
    return session.checkout


async def save_session(session: Session) -> None:
    try:
        await session.save()
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


async def save_checkout(session: Session, flow: CheckoutFlow, step: str) -> None:
    """Store an edited checkout unless a payment started on it meanwhile."""
    try:
        stored = await session.store_checkout(flow, step, None)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not stored:
        raise HTTPException(status_code=409, detail="Checkout was changed by another request")


async def get_course_or_404(course_id: str) -> Course:
    course = await database.fetch_course(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


# --- Health ---
@app.get("/")
async def root():
    return {"name": "OmniLearn Storefront API", "status": "ok"}


@app.get("/test")
async def test_database():
    resp = {"backend": "ok", "database": "connected", "collections": []}
    try:
        db = await database.get_db()
        resp["collections"] = await db.list_collection_names()
    except Exception as e:
        resp["database"] = f"error: {str(e)[:50]}"
    return resp


# --- Catalog ---
@app.get("/api/courses")
async def list_courses(category: Optional[str] = None, q: Optional[str] = None):
    courses = await database.fetch_courses()
    if category and category != "All":
        courses = [c for c in courses if c.category == category]
    if q:
        courses = [c for c in courses if q.lower() in c.title.lower()]
    return {"courses": [dump(c) for c in courses]}


@app.get("/api/courses/{course_id}")
async def course_detail(course_id: str):
    return {"course": dump(await get_course_or_404(course_id))}


@app.get("/api/route")
async def initial_route(request: Request, session: Session = Depends(get_session)):
    """Resolve the landing view from ?access=, ?c= or ?s=."""
    courses = await database.fetch_courses()
    result = await resolve_initial_view(
        request.query_params, courses, session.admin_auth, shortlinks.resolve_short_link
    )
    course = course_for_view(result.view, courses)
    return {
        "view": result.view.model_dump(by_alias=True),
        "clearQuery": result.clear_query,
        "course": dump(course) if course else None,
    }


@app.get("/api/s/{code}")
async def resolve_short_code(code: str):
    course_id = await shortlinks.resolve_short_link(code)
    if course_id is None:
        raise HTTPException(status_code=404, detail="Short link not found")
    return {"courseId": course_id}


# --- Cart ---
@app.get("/api/cart")
async def get_cart(session: Session = Depends(get_session)):
    return {"items": [dump(i) for i in session.cart]}


@app.post("/api/cart")
async def add_to_cart(payload: CartAdd, session: Session = Depends(get_session)):
    course = await get_course_or_404(payload.course_id)
    try:
        item = session.add_to_cart(course)
    except CheckoutConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    await save_session(session)
    return {"item": dump(item), "count": len(session.cart)}


@app.post("/api/cart/buy-now")
async def buy_now(payload: CartAdd, session: Session = Depends(get_session)):
    """Replace the cart with a single course and open checkout on it."""
    course = await get_course_or_404(payload.course_id)
    try:
        session.buy_now(course)
    except CheckoutConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    session.checkout = CheckoutFlow(session.cart)
    await save_session(session)
    return {"checkout": session.checkout.summary()}


@app.delete("/api/cart/{cart_id}")
async def remove_from_cart(cart_id: str, session: Session = Depends(get_session)):
    try:
        removed = session.remove_from_cart(cart_id)
    except CheckoutConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Cart item not found")
    await save_session(session)
    return {"items": [dump(i) for i in session.cart]}


# --- Checkout ---
@app.post("/api/checkout")
async def start_checkout(session: Session = Depends(get_session)):
    if session.checkout is not None and session.checkout.payment_started:
        raise HTTPException(status_code=409, detail="Payment is already underway")
    try:
        session.checkout = CheckoutFlow(session.cart)
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await save_session(session)
    return {"checkout": session.checkout.summary()}


@app.get("/api/checkout")
async def get_checkout(session: Session = Depends(get_session)):
    return {"checkout": current_checkout(session).summary()}


@app.post("/api/checkout/details")
async def submit_details(payload: ContactDetails, session: Session = Depends(get_session)):
    flow = current_checkout(session)
    step = flow.step
    try:
        flow.submit_details(payload.name, payload.email, payload.phone)
    except CheckoutConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await save_checkout(session, flow, step)
    return {"checkout": flow.summary()}


@app.post("/api/checkout/back")
async def back_to_details(session: Session = Depends(get_session)):
    flow = current_checkout(session)
    step = flow.step
    try:
        flow.back_to_details()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    await save_checkout(session, flow, step)
    return {"checkout": flow.summary()}


@app.post("/api/checkout/coupon")
async def apply_checkout_coupon(payload: CouponCode, session: Session = Depends(get_session)):
    flow = current_checkout(session)
    step = flow.step
    try:
        result = flow.apply_coupon(payload.code)
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    await save_checkout(session, flow, step)
    return {"coupon": dump(result.coupon), "discount": result.discount, "checkout": flow.summary()}


@app.delete("/api/checkout/coupon")
async def remove_checkout_coupon(session: Session = Depends(get_session)):
    flow = current_checkout(session)
    step = flow.step
    try:
        flow.remove_coupon()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    await save_checkout(session, flow, step)
    return {"checkout": flow.summary()}


@app.get("/api/checkout/payment-links")
async def payment_links(session: Session = Depends(get_session)):
    flow = current_checkout(session)
    merchant = await database.fetch_merchant_settings() or DEFAULT_MERCHANT
    return {"merchant": dump(merchant), "amount": flow.final_total, "links": build_upi_links(merchant, flow.final_total)}


@app.post("/api/checkout/pay")
async def pay(payload: PaymentSubmit, session: Session = Depends(get_session)):
    """
    Run the simulated payment step.

    Always settles as a pending order awaiting admin approval; one
    transaction is recorded per cart item and the cart is emptied. The
    stored checkout is claimed before any delay, so a repeated submit
    gets 409 instead of a second set of orders.
    """
    flow = current_checkout(session)
    try:
        txns = await flow.pay(payload.method, persist=session.store_checkout)
    except CheckoutConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    await record_transactions(txns)
    session.clear_cart()
    session.checkout = None
    await save_session(session)
    return {"status": flow.step, "transactions": [dump(t) for t in txns]}


@app.post("/api/checkout/cancel")
async def cancel_checkout(session: Session = Depends(get_session)):
    flow = current_checkout(session)
    try:
        course_id = flow.cancel()
    except CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    try:
        dropped = await session.drop_checkout()
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not dropped:
        raise HTTPException(status_code=409, detail="Payment is already underway")
    view = CourseDetailView(course_id=course_id or config.DEFAULT_COURSE_ID)
    return {"view": view.model_dump(by_alias=True)}


# --- AI advisor ---
@app.post("/api/advisor/chat")
async def advisor_chat(payload: ChatRequest):
    courses = await database.fetch_courses()
    reply = await run_in_threadpool(advisor.get_course_recommendation, payload.message, payload.history, courses)
    return {"reply": reply}


@app.post("/api/courses/{course_id}/tutor")
async def course_tutor(course_id: str, payload: ChatRequest):
    course = await get_course_or_404(course_id)
    reply = await run_in_threadpool(advisor.get_course_tutor_response, payload.message, payload.history, course)
    return {"reply": reply}


# --- Admin ---
@app.post("/api/admin/login")
async def admin_login(payload: AdminLogin, session: Session = Depends(get_session)):
    if not config.ADMIN_PASSWORD:
        raise HTTPException(status_code=500, detail="Admin login not configured on server")
    valid = hmac.compare_digest(payload.email.strip().lower().encode("utf-8"), config.ADMIN_EMAIL.lower().encode("utf-8")) and \
        hmac.compare_digest(payload.password.encode("utf-8"), config.ADMIN_PASSWORD.encode("utf-8"))
    if not valid:
        logger.warning("Failed admin login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    session.login()
    await save_session(session)
    return {"view": {"type": "SELLER_DASHBOARD"}}


@app.post("/api/admin/logout")
async def admin_logout(session: Session = Depends(get_session)):
    session.logout()
    await save_session(session)
    return {"view": {"type": "ADMIN_LOGIN"}}


@app.get("/api/admin/dashboard")
async def admin_dashboard(_: Session = Depends(require_admin)):
    courses = await database.fetch_courses()
    txns = await database.fetch_transactions()
    return {
        "stats": dashboard.dashboard_stats(courses, txns),
        "courses": dashboard.course_order_counts(courses, txns),
        "pending": [dump(t) for t in dashboard.pending_transactions(txns)],
    }


@app.get("/api/admin/transactions")
async def admin_transactions(course_id: Optional[str] = None, _: Session = Depends(require_admin)):
    txns = await database.fetch_transactions()
    if course_id:
        txns = dashboard.course_orders(txns, course_id)
    return {"transactions": [dump(t) for t in txns]}


@app.post("/api/admin/transactions/{order_id}/decision")
async def decide_transaction(order_id: str, payload: ApprovalDecision, _: Session = Depends(require_admin)):
    if payload.decision not in ("approved", "rejected"):
        raise HTTPException(status_code=400, detail="decision must be 'approved' or 'rejected'")
    try:
        updated = await database.update_transaction_status(order_id, payload.decision, payload.store_key)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return {"id": order_id, "approvalStatus": payload.decision}


@app.post("/api/admin/courses")
async def admin_save_course(course: Course, _: Session = Depends(require_admin)):
    """Create or update a course and hand back fresh share links for it."""
    try:
        saved_id = await database.save_course(course)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    try:
        share = await shortlinks.share_links(config.PUBLIC_BASE_URL, saved_id)
    except shortlinks.ShortLinkError as e:
        logger.warning("Saved course %s without a short link: %s", saved_id, e)
        share = {"course_id": saved_id, "link": shortlinks.course_link(config.PUBLIC_BASE_URL, saved_id)}
    return {"id": saved_id, "share": share}


@app.delete("/api/admin/courses/{course_id}")
async def admin_delete_course(course_id: str, _: Session = Depends(require_admin)):
    try:
        await database.delete_course(course_id)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"deleted": course_id}


@app.post("/api/admin/courses/{course_id}/share")
async def admin_share_course(course_id: str, _: Session = Depends(require_admin)):
    await get_course_or_404(course_id)
    try:
        return await shortlinks.share_links(config.PUBLIC_BASE_URL, course_id)
    except shortlinks.ShortLinkError as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/api/admin/merchant-settings")
async def get_merchant_settings(_: Session = Depends(require_admin)):
    settings = await database.fetch_merchant_settings()
    return {"settings": dump(settings) if settings else None}


@app.put("/api/admin/merchant-settings")
async def put_merchant_settings(settings: MerchantSettings, _: Session = Depends(require_admin)):
    try:
        await database.save_merchant_settings(settings)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"settings": dump(settings)}


@app.get("/api/admin/coupons")
async def admin_list_coupons(_: Session = Depends(require_admin)):
    return {"coupons": [dump(c) for c in await database.fetch_coupons()]}


@app.post("/api/admin/coupons")
async def admin_save_coupon(coupon: Coupon, _: Session = Depends(require_admin)):
    try:
        coupon_id = await database.save_coupon(coupon)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"id": coupon_id}


@app.delete("/api/admin/coupons/{coupon_id}")
async def admin_delete_coupon(coupon_id: str, _: Session = Depends(require_admin)):
    try:
        await database.delete_coupon(coupon_id)
    except database.StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"deleted": coupon_id}


@app.get("/api/coupons/validate")
async def validate_coupon(code: str):
    coupon = await database.validate_coupon_code(code)
    if coupon is None:
        raise HTTPException(status_code=404, detail="Invalid or inactive coupon")
    return {"coupon": dump(coupon)}
