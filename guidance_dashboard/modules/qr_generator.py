"""
QR Code Generator Module - QR Guidance Attendance Dashboard

This module owns the QR payload format shared by enrollment and scanning, and
renders printable QR images for student IDs.

The payload is compact JSON with short keys so the code stays small enough to
scan reliably from a printed ID:

    n  - student name          gn - gender
    g  - grade level           s  - section
    l  - LRN                   c  - parent contact
    e  - parent email

Whatever build_payload emits, decode_payload accepts unchanged.

Features:
- Payload encoding/decoding with MalformedPayload on bad input
- QR image generation (PNG, base64)
- Optional name/grade caption under the code for printed IDs
"""

import qrcode
import io
import base64
from PIL import Image, ImageDraw, ImageFont
import json
import logging
from typing import Any, Dict

from guidance_dashboard.modules.errors import MalformedPayload

PAYLOAD_KEYS = ('n', 'gn', 'g', 's', 'l', 'c', 'e')

logger = logging.getLogger(__name__)


def build_payload(student: Dict[str, Any]) -> str:
    """
    Encode a student's data as the QR payload string.

    Args:
        student (Dict[str, Any]): Student fields (name, gender, grade, section,
            lrn, parent_contact, parent_email)

    Returns:
        str: Compact JSON payload
    """
    payload = {
        'n': student['name'],
        'gn': student.get('gender') or 'rather_not_say',
        'g': str(student['grade']),
        's': student['section'],
        'l': student.get('lrn') or '',
        'c': student.get('parent_contact') or '',
        'e': student.get('parent_email') or '',
    }
    return json.dumps(payload, separators=(',', ':'), ensure_ascii=False)


def _field(decoded: Dict[str, Any], key: str) -> str:
    value = decoded.get(key)
    if value is None:
        return ''
    return str(value).strip()


def decode_payload(raw: Any) -> Dict[str, str]:
    """
    Parse a scanned QR payload into normalized student fields.

    Args:
        raw (Any): Text read from the QR code

    Returns:
        Dict[str, str]: name, gender, grade, section, lrn, parent_contact, parent_email

    Raises:
        MalformedPayload: If the payload is not a JSON object carrying name, grade and section
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedPayload('Empty QR payload')

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        raise MalformedPayload('QR payload is not valid JSON')

    if not isinstance(decoded, dict):
        raise MalformedPayload('QR payload must be a JSON object')

    fields = {
        'name': _field(decoded, 'n'),
        'gender': _field(decoded, 'gn') or 'rather_not_say',
        'grade': _field(decoded, 'g'),
        'section': _field(decoded, 's'),
        'lrn': _field(decoded, 'l'),
        'parent_contact': _field(decoded, 'c'),
        'parent_email': _field(decoded, 'e'),
    }

    missing = [key for key in ('name', 'grade', 'section') if not fields[key]]
    if missing:
        raise MalformedPayload(f"QR payload missing required field(s): {', '.join(missing)}")

    return fields


class QRGenerator:
    """
    Renders student QR codes as PNG images.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.logger = logging.getLogger(__name__)
        self.default_settings = {
            'error_correction': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def generate_student_qr_code(self, student: Dict[str, Any],
                                 with_info: bool = False) -> Dict[str, Any]:
        """
        Generate a QR code image for a student.

        Args:
            student (Dict[str, Any]): Student record (must carry qr_data or enough fields to build it)
            with_info (bool): Draw the student's name and grade/section under the code

        Returns:
            Dict[str, Any]: Result with the payload and base64 PNG
        """
        try:
            qr_data = student.get('qr_data') or build_payload(student)
            settings = self.default_settings

            qr = qrcode.QRCode(
                version=None,
                error_correction=settings['error_correction'],
                box_size=settings['box_size'],
                border=settings['border']
            )
            qr.add_data(qr_data)
            qr.make(fit=True)

            img = qr.make_image(
                fill_color=settings['fill_color'],
                back_color=settings['back_color']
            ).convert('RGB')

            if with_info:
                img = self._add_student_info_overlay(img, student)

            buffer = io.BytesIO()
            img.save(buffer, format='PNG')
            img_base64 = base64.b64encode(buffer.getvalue()).decode()

            safe_name = ''.join(ch for ch in student.get('name', 'student') if ch.isalnum())
            filename = f"qr_{student.get('grade', '')}_{student.get('section', '')}_{safe_name}.png"

            self.logger.info(f"QR code generated for {student.get('student_id', safe_name)}")
            return {
                'success': True,
                'qr_data': qr_data,
                'image_base64': img_base64,
                'image_size': img.size,
                'filename': filename,
                'student_id': student.get('student_id')
            }

        except (KeyError, ValueError, OSError) as e:
            self.logger.error(f"QR code generation failed: {str(e)}")
            return {
                'success': False,
                'error': str(e),
                'student_id': student.get('student_id', 'unknown')
            }

    def _add_student_info_overlay(self, qr_img: Image.Image, student: Dict[str, Any]) -> Image.Image:
        """Add the student's name and grade/section below the QR code."""
        width, height = qr_img.size
        canvas = Image.new('RGB', (width, height + 60), 'white')
        canvas.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(canvas)
        try:
            font_large = ImageFont.truetype("arial.ttf", 16)
            font_small = ImageFont.truetype("arial.ttf", 12)
        except (IOError, OSError):
            font_large = ImageFont.load_default()
            font_small = ImageFont.load_default()

        lines = [
            (student.get('name', ''), font_large),
            (f"Grade {student.get('grade', '')} - {student.get('section', '')}", font_small),
        ]

        text_y = height + 8
        for text, font in lines:
            bbox = draw.textbbox((0, 0), text, font=font)
            text_width = bbox[2] - bbox[0]
            draw.text(((width - text_width) // 2, text_y), text, fill='black', font=font)
            text_y += 24

        return canvas
