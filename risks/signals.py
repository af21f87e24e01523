from django.dispatch import Signal, receiver
import logging

logger = logging.getLogger(__name__)

# Sent with risk=<Risk> when a risk enters the high band.
high_risk_identified = Signal()


@receiver(high_risk_identified)
def log_high_risk(sender, risk, **kwargs):
    """
    Record the high-risk notification.
    Delivery (mail, chat) is not wired up; the log line is the notification.
    """
    logger.info(
        f"High risk notification: Risk '{risk.title}' (ID: {risk.pk}) "
        f"has a high risk score of {risk.risk_score}"
    )


def notify_high_risk(risk):
    """
    Fire the high-risk signal without letting a receiver failure
    reach the mutation that triggered it.
    """
    try:
        responses = high_risk_identified.send_robust(sender=risk.__class__, risk=risk)
    except Exception as e:
        logger.error(f"Failed to send high risk notification: {e}")
        return
    for handler, response in responses:
        if isinstance(response, Exception):
            logger.error(
                f"Failed to send high risk notification for risk {risk.pk} "
                f"via {getattr(handler, '__name__', handler)}: {response}"
            )
