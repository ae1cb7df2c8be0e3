# api/ml_service.py
"""
Client for the hosted AI vision service.

The service speaks the chat-completions protocol: we send the photo as a
data URL next to a prompt and get the model's JSON verdict back as message
content. The verdict is normalised into the detection payload the field
clients expect.
"""
import json
import logging
import re
import time

import requests
from django.conf import settings
from rest_framework import status

from .exceptions import InferenceError
from .pest_catalog import lookup_pest, prompt_pest_list
from .storage import strip_data_url

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert agricultural entomologist AI specialized in pest detection, "
    "particularly armyworm species. Your primary focus is on detecting:\n\n"
    "{pests}\n\n"
    "Analyze the image and determine if any pests are present."
)

USER_PROMPT = """Analyze this image from a {crop} field.

Respond with a JSON object containing:
{{
  "detected": true/false,
  "pest_name": "Common name of the pest" or "None",
  "scientific_name": "Scientific name" or null,
  "confidence": 0.0-1.0 (your confidence level),
  "life_stage": "egg/larva/pupa/adult" or null,
  "severity": "low/medium/high" or null,
  "description": "Brief description of what you see",
  "recommendations": ["Array of recommended actions"]
}}

Be conservative - only report high confidence detections. If unsure, set detected to false."""

FALLBACK_RESULT = {
    'detected': False,
    'pest_name': 'Unknown',
    'confidence': 0,
    'description': 'Unable to analyze image',
    'recommendations': ['Please try capturing a clearer image'],
}

FENCED_JSON = re.compile(r'```json\s*([\s\S]*?)\s*```')
BARE_JSON = re.compile(r'\{[\s\S]*\}')


def build_request(image_base64, crop_type):
    return {
        'model': settings.PEST_AI_MODEL,
        'messages': [
            {'role': 'system', 'content': SYSTEM_PROMPT.format(pests=prompt_pest_list())},
            {
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': USER_PROMPT.format(crop=crop_type or 'crop')},
                    {
                        'type': 'image_url',
                        'image_url': {'url': f'data:image/jpeg;base64,{strip_data_url(image_base64)}'},
                    },
                ],
            },
        ],
        'max_tokens': 1024,
    }


def parse_model_content(content):
    """
    Pull the JSON verdict out of the model's reply.

    Accepts a fenced ```json block, a bare object embedded in prose, or raw
    JSON. Anything unparsable becomes FALLBACK_RESULT.
    """
    match = FENCED_JSON.search(content) or BARE_JSON.search(content)
    json_str = (match.group(1) if match.lastindex else match.group(0)) if match else content
    try:
        parsed = json.loads(json_str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to parse AI response: %s", e)
        return dict(FALLBACK_RESULT)
    if not isinstance(parsed, dict):
        return dict(FALLBACK_RESULT)
    return parsed


def normalize_confidence(value):
    try:
        confidence = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return round(min(max(confidence, 0.0), 1.0), 2)


def normalize_detection(result):
    """Shape a parsed model verdict into the public detection payload."""
    pest_type = result.get('pest_name') or 'None'
    scientific_name = result.get('scientific_name') or None
    if scientific_name is None:
        known = lookup_pest(pest_type)
        if known:
            scientific_name = known['scientific_name']

    return {
        'detected': bool(result.get('detected', False)),
        'pest_type': pest_type,
        'scientific_name': scientific_name,
        'confidence': normalize_confidence(result.get('confidence')),
        'life_stage': result.get('life_stage') or None,
        'severity': result.get('severity') or None,
        'description': result.get('description') or '',
        'recommendations': result.get('recommendations') or [],
    }


def _post(payload, timeout):
    return requests.post(
        settings.PEST_AI_URL,
        json=payload,
        headers={
            'Authorization': f'Bearer {settings.PEST_AI_API_KEY}',
            'Content-Type': 'application/json',
        },
        timeout=timeout,
    )


def call_vision_api(payload, max_retries=None):
    """
    Send ``payload`` to the AI service with retry logic.

    503 (model warming up), timeouts and connection errors are retried with
    a growing wait; other failures raise InferenceError immediately.
    """
    max_retries = max_retries or settings.PEST_AI_MAX_RETRIES
    timeout = settings.PEST_AI_TIMEOUT

    for attempt in range(max_retries):
        last_attempt = attempt == max_retries - 1
        try:
            response = _post(payload, timeout)
        except requests.exceptions.Timeout:
            if not last_attempt:
                logger.warning("AI service timeout on attempt %d/%d, retrying", attempt + 1, max_retries)
                time.sleep(5)
                continue
            raise InferenceError(
                'AI service is taking longer than expected. Please try again.',
                status_code=status.HTTP_504_GATEWAY_TIMEOUT, retry=True,
            )
        except requests.exceptions.ConnectionError:
            if not last_attempt:
                logger.warning("AI service connection error on attempt %d/%d, retrying", attempt + 1, max_retries)
                time.sleep(5)
                continue
            raise InferenceError('Cannot connect to AI service.', status_code=status.HTTP_503_SERVICE_UNAVAILABLE, retry=True)

        if response.status_code == 503:
            if not last_attempt:
                wait_time = (attempt + 1) * 10
                logger.warning("AI service not ready, waiting %ds before retry %d/%d", wait_time, attempt + 1, max_retries)
                time.sleep(wait_time)
                continue
            raise InferenceError(
                'AI service is starting up. Please wait 30 seconds and try again.',
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, retry=True,
            )

        if response.status_code == 429:
            raise InferenceError(
                'Rate limit exceeded, please try again later',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS, retry=True,
            )

        if response.status_code == 402:
            raise InferenceError('AI credits depleted, please add credits', status_code=status.HTTP_402_PAYMENT_REQUIRED)

        if response.status_code != 200:
            logger.error("AI gateway error: %s %s", response.status_code, response.text[:500])
            raise InferenceError('AI analysis failed')

        return response.json()

    raise InferenceError('Max retries exceeded', retry=True)


def detect_pest(image_base64, crop_type):
    """
    Run one photo through the vision model.

    Returns:
        dict: ``{'success': True, 'detection': {...}}``

    Raises:
        InferenceError: when the service is unconfigured or unreachable, or
            returns no content.
    """
    if not settings.PEST_AI_URL or not settings.PEST_AI_API_KEY:
        logger.error("PEST_AI_URL / PEST_AI_API_KEY is not configured")
        raise InferenceError('AI service not configured', status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Analyzing image for pest detection (crop=%s)", crop_type)
    ai_data = call_vision_api(build_request(image_base64, crop_type))

    try:
        content = ai_data['choices'][0]['message']['content']
    except (KeyError, IndexError, TypeError):
        content = None

    if not content:
        logger.error("No content in AI response")
        raise InferenceError('AI returned no analysis')

    detection = normalize_detection(parse_model_content(content))
    logger.info("Detection result: %s (%.2f)", detection['pest_type'], detection['confidence'])
    return {'success': True, 'detection': detection}
