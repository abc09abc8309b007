# =============================================================================
# lib/email_templates.py - Transactional Email Templates
# =============================================================================
# Jinja2 templates for every email the store sends. Each entry in
# EMAIL_TEMPLATES pairs a subject template with an HTML body template;
# bodies are wrapped in the shared LAYOUT.
#
# Usage:
#   from lib.email_templates import render_email
#   subject, html = render_email("order_shipped", {"order_number": "AKU-..."})
# =============================================================================

from typing import Any

from jinja2 import Environment, select_autoescape

LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
</head>
<body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #e5e5e5; background-color: #0a0a0a; margin: 0; padding: 0;">
    <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #0a0a0a; padding: 20px;">
        <tr>
            <td align="center">
                <table width="600" cellpadding="0" cellspacing="0" style="background-color: #141414; border-radius: 12px; border: 1px solid #2a2a2a;">
                    <tr>
                        <td style="background: linear-gradient(135deg, #ff0055 0%, #7b2ff7 100%); padding: 28px; text-align: center; border-radius: 12px 12px 0 0;">
                            <h1 style="color: #ffffff; margin: 0; font-size: 26px; letter-spacing: 2px;">AKUSHO</h1>
                            <p style="color: #ffffff; margin: 6px 0 0; font-size: 16px;">{{ title }}</p>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 32px 28px;">
                            {{ content|safe }}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 20px 28px; text-align: center; font-size: 12px; color: #888;">
                            Questions? Reply to this email or write to us at {{ support_email }}.<br>
                            <a href="{{ site_url }}" style="color: #ff0055;">{{ site_url }}</a>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""

ITEMS_TABLE = """
<table width="100%" cellpadding="6" cellspacing="0" style="border-collapse: collapse; margin: 16px 0;">
    <tr style="background-color: #1f1f1f;">
        <th align="left">Item</th><th align="center">Qty</th><th align="right">Price</th>
    </tr>
    {% for item in items %}
    <tr style="border-bottom: 1px solid #2a2a2a;">
        <td>{{ item.name }}</td>
        <td align="center">{{ item.quantity }}</td>
        <td align="right">&#8377;{{ "%.2f"|format((item.price or 0)|float * (item.quantity or 1)|int) }}</td>
    </tr>
    {% endfor %}
</table>
"""

TOTALS_BLOCK = """
<table width="100%" cellpadding="4" cellspacing="0">
    <tr><td>Subtotal</td><td align="right">&#8377;{{ "%.2f"|format((subtotal or 0)|float) }}</td></tr>
    <tr><td>Shipping</td><td align="right">{% if shipping %}&#8377;{{ "%.2f"|format(shipping|float) }}{% else %}FREE{% endif %}</td></tr>
    {% if discount %}<tr><td>Discount</td><td align="right">-&#8377;{{ "%.2f"|format(discount|float) }}</td></tr>{% endif %}
    <tr><td><strong>Total</strong></td><td align="right"><strong>&#8377;{{ "%.2f"|format((total or 0)|float) }}</strong></td></tr>
</table>
"""

ORDER_CONFIRMATION = """
<p>Hi {{ customer_name }},</p>
<p>Thank you for shopping with AKUSHO! Your payment was received and order <strong>#{{ order_number }}</strong> is confirmed.</p>
""" + ITEMS_TABLE + TOTALS_BLOCK + """
{% if shipping_address %}<p><strong>Shipping to:</strong><br>{{ shipping_address }}</p>{% endif %}
<p>We'll email you again as soon as your order ships.</p>
"""

ADMIN_NEW_ORDER = """
<p>A new paid order just came in.</p>
<p><strong>#{{ order_number }}</strong> from {{ customer_name }} ({{ customer_email }}{% if customer_phone %}, {{ customer_phone }}{% endif %})</p>
""" + ITEMS_TABLE + TOTALS_BLOCK + """
{% if shipping_address %}<p><strong>Ship to:</strong><br>{{ shipping_address }}</p>{% endif %}
<p><a href="{{ site_url }}/admin/orders/{{ order_id }}" style="color: #ff0055;">Open in admin</a></p>
"""

ORDER_ACCEPTED = """
<p>Hi {{ customer_name }},</p>
<p>Great news! Order <strong>#{{ order_number }}</strong> has been accepted and is being prepared for dispatch.</p>
""" + ITEMS_TABLE + """
<p>Total: <strong>&#8377;{{ "%.2f"|format((total or 0)|float) }}</strong></p>
"""

ORDER_REJECTED = """
<p>Hi {{ customer_name }},</p>
<p>We're sorry, but we could not process order <strong>#{{ order_number }}</strong>.</p>
{% if reason %}<p><strong>Reason:</strong> {{ reason }}</p>{% endif %}
{% if refund_amount %}<p>A refund of <strong>&#8377;{{ "%.2f"|format(refund_amount|float) }}</strong> has been initiated and should reach you in 5-7 business days.</p>{% endif %}
"""

READY_TO_DISPATCH = """
<p>Hi {{ customer_name }},</p>
<p>Order <strong>#{{ order_number }}</strong> is packed and ready for pickup by {{ courier_name or "our courier partner" }}.</p>
{% if awb_code %}<p>AWB: <strong>{{ awb_code }}</strong></p>{% endif %}
{% if expected_delivery %}<p>Expected delivery: {{ expected_delivery }}</p>{% endif %}
{% if tracking_url %}<p><a href="{{ tracking_url }}" style="color: #ff0055;">Track your package</a></p>{% endif %}
"""

ORDER_SHIPPED = """
<p>Hi {{ customer_name }},</p>
<p>Order <strong>#{{ order_number }}</strong> is on the way!</p>
{% if courier_name %}<p>Courier: {{ courier_name }}</p>{% endif %}
{% if awb_code %}<p>AWB: <strong>{{ awb_code }}</strong></p>{% endif %}
{% if expected_delivery %}<p>Expected delivery: {{ expected_delivery }}</p>{% endif %}
{% if tracking_url %}<p><a href="{{ tracking_url }}" style="color: #ff0055;">Track your package</a></p>{% endif %}
"""

OUT_FOR_DELIVERY = """
<p>Hi {{ customer_name }},</p>
<p>Order <strong>#{{ order_number }}</strong> is out for delivery today. Please keep your phone handy!</p>
{% if awb_code %}<p>AWB: <strong>{{ awb_code }}</strong></p>{% endif %}
"""

ORDER_DELIVERED = """
<p>Hi {{ customer_name }},</p>
<p>Order <strong>#{{ order_number }}</strong> has been delivered. We hope you love your collectibles!</p>
<p>Received something wrong or damaged? You can request a return within 7 days of delivery.</p>
"""

ORDER_CANCELLED = """
<p>Hi {{ customer_name }},</p>
<p>Order <strong>#{{ order_number }}</strong> has been cancelled.</p>
{% if reason %}<p><strong>Reason:</strong> {{ reason }}</p>{% endif %}
<p>If you paid online, any refund will be processed to your original payment method.</p>
"""

WELCOME = """
<p>Hi {{ customer_name or "there" }},</p>
<p>Welcome to AKUSHO, your home for anime figures, posters and collectibles!</p>
<p><a href="{{ site_url }}/shop" style="color: #ff0055;">Start exploring the shop</a></p>
"""

ADMIN_DAILY_SUMMARY = """
<p>Summary for <strong>{{ date }}</strong></p>
<table width="100%" cellpadding="4" cellspacing="0">
    <tr><td>Orders</td><td align="right">{{ total_orders }}</td></tr>
    <tr><td>Paid orders</td><td align="right">{{ paid_orders }}</td></tr>
    <tr><td>Revenue</td><td align="right">&#8377;{{ "%.2f"|format((revenue or 0)|float) }}</td></tr>
    <tr><td>Pending review</td><td align="right">{{ pending_orders }}</td></tr>
</table>
"""

OFFLINE_INVOICE = """
<p>Hi {{ customer_name }},</p>
<p>Please find the details of invoice <strong>{{ invoice_number }}</strong> below.</p>
""" + ITEMS_TABLE + TOTALS_BLOCK + """
{% if notes %}<p>{{ notes }}</p>{% endif %}
"""

# email type -> (subject template, body template)
EMAIL_TEMPLATES: dict[str, tuple[str, str]] = {
    "order_confirmation": ("Order Confirmed! #{{ order_number }} - AKUSHO", ORDER_CONFIRMATION),
    "admin_new_order": ("New Order #{{ order_number }} - ₹{{ '{:,.0f}'.format((total or 0)|float) }}", ADMIN_NEW_ORDER),
    "order_accepted": ("Order Accepted! #{{ order_number }} - AKUSHO", ORDER_ACCEPTED),
    "order_rejected": ("Order #{{ order_number }} Could Not Be Processed - AKUSHO", ORDER_REJECTED),
    "ready_to_dispatch": ("Your Order #{{ order_number }} is Ready for Pickup! - AKUSHO", READY_TO_DISPATCH),
    "order_shipped": ("Shipped! Order #{{ order_number }} is on the way - AKUSHO", ORDER_SHIPPED),
    "out_for_delivery": ("Out for Delivery! Order #{{ order_number }} - AKUSHO", OUT_FOR_DELIVERY),
    "order_delivered": ("Delivered! Order #{{ order_number }} - AKUSHO", ORDER_DELIVERED),
    "order_cancelled": ("Order #{{ order_number }} Cancelled - AKUSHO", ORDER_CANCELLED),
    "welcome": ("Welcome to AKUSHO!", WELCOME),
    "admin_daily_summary": ("AKUSHO Daily Summary - {{ date }}", ADMIN_DAILY_SUMMARY),
    "offline_invoice": ("Invoice {{ invoice_number }} - AKUSHO", OFFLINE_INVOICE),
}

TITLES: dict[str, str] = {
    "order_confirmation": "Order Confirmed",
    "admin_new_order": "New Order",
    "order_accepted": "Order Accepted",
    "order_rejected": "Order Update",
    "ready_to_dispatch": "Ready for Pickup",
    "order_shipped": "Shipped",
    "out_for_delivery": "Out for Delivery",
    "order_delivered": "Delivered",
    "order_cancelled": "Order Cancelled",
    "welcome": "Welcome",
    "admin_daily_summary": "Daily Summary",
    "offline_invoice": "Invoice",
}

_env = Environment(autoescape=select_autoescape(default_for_string=True))
_subject_env = Environment(autoescape=False)


def render_email(email_type: str, data: dict[str, Any], site_url: str = "", support_email: str = "") -> tuple[str, str]:
    """
    Render the subject and HTML body for an email type.

    Raises:
        KeyError: If the email type has no template
    """
    subject_template, body_template = EMAIL_TEMPLATES[email_type]
    context = {"site_url": site_url, "support_email": support_email, **data}

    subject = _subject_env.from_string(subject_template).render(**context)
    content = _env.from_string(body_template).render(**context)
    html = _env.from_string(LAYOUT).render(
        title=TITLES.get(email_type, "AKUSHO"),
        content=content,
        site_url=site_url,
        support_email=support_email,
    )
    return subject, html
