from typing import Dict, List, Sequence

from .schemas import Course, Transaction


def dashboard_stats(courses: Sequence[Course], transactions: Sequence[Transaction]) -> Dict[str, float]:
    successful = [t for t in transactions if t.status == "success"]
    pending = [t for t in transactions if t.approval_status == "pending"]
    return {
        "totalRevenue": sum(t.amount for t in successful),
        "pendingApprovals": len(pending),
        "totalStudents": sum(c.students for c in courses) + len(successful),
        "totalCourses": len(courses),
    }


def pending_transactions(transactions: Sequence[Transaction]) -> List[Transaction]:
    return [t for t in transactions if t.approval_status == "pending"]


def course_orders(transactions: Sequence[Transaction], course_id: str) -> List[Transaction]:
    """Orders for one course, newest first."""
    orders = [t for t in transactions if t.course_id == course_id]
    return sorted(orders, key=lambda t: t.date, reverse=True)


def course_order_counts(courses: Sequence[Course], transactions: Sequence[Transaction]) -> List[dict]:
    out = []
    for c in courses:
        orders = [t for t in transactions if t.course_id == c.id]
        out.append({
            "courseId": c.id,
            "title": c.title,
            "orders": len(orders),
            "successful": sum(1 for t in orders if t.status == "success"),
        })
    return out
