from typing import Dict
from urllib.parse import quote

from .schemas import MerchantSettings

QR_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"

DEFAULT_MERCHANT = MerchantSettings(
    name="Ekbal Singh",
    upi_id="paytmqr13jawpo6eg@paytm",
    merchant_id="TmgGWw61263236898331",
    number="7762068897",
)


def upi_params(merchant: MerchantSettings, amount: float) -> str:
    return (
        f"pa={merchant.upi_id}&pn={quote(merchant.name, safe='')}"
        f"&am={amount:.2f}&cu=INR&tn=CoursePayment"
    )


def build_upi_links(merchant: MerchantSettings, amount: float) -> Dict[str, str]:
    """Deep links for the UPI apps plus a QR image of the generic upi:// URI."""
    params = upi_params(merchant, amount)
    generic = f"upi://pay?{params}"
    return {
        "gpay": f"tez://upi/pay?{params}",
        "phonepe": f"phonepe://pay?{params}",
        "paytm": f"paytmmp://pay?{params}",
        "upi": generic,
        "qr_code_url": f"{QR_ENDPOINT}?size=200x200&data={quote(generic, safe='')}",
    }
