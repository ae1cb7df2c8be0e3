import logging

from api.exceptions import AuthError, ForbiddenError, ValidationError
from api.models import Message

logger = logging.getLogger(__name__)


def send_message(sender, recipient, content, detection=None):
    """
    Store a farmer/reviewer note.

    One side of the conversation must be a reviewer. A message anchored to a
    detection must be between a reviewer and the farmer who submitted it.
    """
    if sender is None or not sender.is_authenticated:
        raise AuthError()
    if not content or not content.strip():
        raise ValidationError('Message content is required')

    if 'lgu_admin' not in (sender.role, recipient.role):
        raise ForbiddenError('Messages must be exchanged with an LGU reviewer')
    if detection is not None:
        farmer = recipient if sender.role == 'lgu_admin' else sender
        if detection.user_id != farmer.pk:
            raise ForbiddenError('Detection does not belong to this farmer')

    message = Message.objects.create(
        sender=sender,
        recipient=recipient,
        content=content,
        detection=detection,
    )
    logger.info("Message %s sent from %s to %s", message.pk, sender.pk, recipient.pk)
    return message
