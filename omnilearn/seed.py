from typing import List

from .schemas import Course

DEFAULT_POLICIES = {
    "refund": "30-day money-back guarantee. If you're unsatisfied, request a full refund within 30 days.",
    "privacy": "Your data is encrypted. We do not share your personal information with third parties.",
    "license": "Single-user license. Content cannot be redistributed or resold.",
}

DEFAULT_FAQS = [
    {"question": "Do I get lifetime access?", "answer": "Yes! Once you purchase a course, you have unlimited access to it forever."},
    {"question": "Is this beginner friendly?", "answer": "Yes, we start from the basics and move to advanced topics."},
]

DEFAULT_FEATURES = ["Lifetime Access", "Access on Mobile & TV", "Certificate of completion", "Secure Payment"]

DEFAULT_COUPONS = [
    {"id": "c1", "code": "WELCOME50", "type": "percent", "value": 50, "isActive": True},
    {"id": "c2", "code": "FLAT500", "type": "flat", "value": 500, "isActive": True},
]

SAMPLE_COURSES = [
    {
        "id": "hacking-bundle-1",
        "title": "Ethical Hacking Complete Bundle",
        "price": 1499,
        "originalPrice": 9999,
        "rating": 4.9,
        "students": 12800,
        "image": "https://picsum.photos/id/0/1200/600",
        "category": "Ethical Hacker",
        "level": "Beginner",
        "description": "Learn penetration testing from scratch: networking, reconnaissance, web exploitation and reporting in a legal lab setup.",
        "curriculum": ["Networking Basics", "Kali Linux Setup", "Reconnaissance", "Web App Testing", "Reporting"],
        "tags": ["Security", "Hacking", "Networking"],
        "coupons": DEFAULT_COUPONS,
    },
    {
        "id": "c1",
        "title": "Fullstack React & Node.js Masterclass",
        "price": 5999,
        "originalPrice": 19999,
        "rating": 4.9,
        "students": 15420,
        "image": "https://picsum.photos/id/1/1200/600",
        "promoVideo": "https://www.youtube.com/watch?v=SqcY0GlETPk",
        "videoAspectRatio": "16:9",
        "category": "Development",
        "level": "Advanced",
        "description": "Master the MERN stack by building 5 real-world projects, from TypeScript and Postgres to deployment.",
        "curriculum": ["React Fundamentals", "Node.js & Express", "PostgreSQL & Prisma", "Authentication & Security", "Deployment (AWS)"],
        "tags": ["React", "Node.js", "Fullstack", "Web Dev"],
        "coupons": DEFAULT_COUPONS,
    },
    {
        "id": "c3",
        "title": "Python for Data Science and AI",
        "price": 7499,
        "originalPrice": 14999,
        "rating": 4.8,
        "students": 22100,
        "image": "https://picsum.photos/id/4/1200/600",
        "category": "Data Science",
        "level": "Intermediate",
        "description": "Dive deep into data analysis with Pandas, NumPy, and Scikit-Learn. Includes an introduction to Generative AI using LLMs.",
        "curriculum": ["Python Basics", "Pandas & NumPy", "Data Visualization", "Machine Learning Basics", "Intro to LLMs"],
        "tags": ["Python", "AI", "Data Science", "Machine Learning"],
    },
    {
        "id": "c4",
        "title": "Digital Marketing Strategy",
        "price": 2999,
        "originalPrice": 5999,
        "rating": 4.5,
        "students": 5300,
        "image": "https://picsum.photos/id/6/1200/600",
        "category": "Marketing",
        "level": "Beginner",
        "description": "A complete guide to SEO, SEM, Social Media Marketing, and Email automation strategies.",
        "curriculum": ["SEO Fundamentals", "Google Ads", "Social Media Content", "Email Marketing", "Analytics"],
        "tags": ["Marketing", "SEO", "Business"],
    },
]


def sample_courses() -> List[Course]:
    return [
        Course.model_validate({
            "policies": DEFAULT_POLICIES,
            "faqs": DEFAULT_FAQS,
            "features": DEFAULT_FEATURES,
            "guarantee": "30-Day Money-Back Guarantee",
            **c,
        })
        for c in SAMPLE_COURSES
    ]
