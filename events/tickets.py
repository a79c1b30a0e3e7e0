import base64
import json
import logging
import time
from io import BytesIO

import qrcode
from django.template.loader import render_to_string
from qrcode.constants import ERROR_CORRECT_H
from xhtml2pdf import pisa

from .services import location_labels

logger = logging.getLogger(__name__)

# The QR on the ticket page is regenerated on this cadence so a screenshot goes stale.
QR_ROTATION_SECONDS = 15


def qr_payload(event, user, timestamp=None):
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return json.dumps({'eventId': event['id'], 'userId': user['id'], 'timestamp': timestamp})


def qr_png(payload):
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=8, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image().save(buffer, format='PNG')
    return buffer.getvalue()


def qr_data_uri(payload):
    encoded = base64.b64encode(qr_png(payload)).decode('ascii')
    return f'data:image/png;base64,{encoded}'


def html_to_pdf(template_src, context_dict):
    html = render_to_string(template_src, context_dict)
    result = BytesIO()
    pdf = pisa.pisaDocument(BytesIO(html.encode("UTF-8")), result)
    if not pdf.err:
        return result.getvalue()
    logger.error("Could not render %s to PDF", template_src)
    return None


def ticket_pdf(event, user):
    city, region = location_labels(event)
    context = {
        'event': event,
        'holder': user,
        'city': city,
        'region': region,
        'qr_code': qr_data_uri(qr_payload(event, user)),
    }
    return html_to_pdf('events/pdf/ticket.html', context)
