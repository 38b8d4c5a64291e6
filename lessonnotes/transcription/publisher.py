"""Session publisher module for pub/sub status and output events."""

import logging
from pubsub import pub

from ..models.ui import SessionStatus, SessionOutput

logger = logging.getLogger(__name__)


STATUS_TOPIC = "session.status"
PARTIAL_TOPIC = "session.partial"
OUTPUT_TOPIC = "session.output"


class SessionPublisher:
    """Publishes session status, live text and final output using pubsub.pub."""

    def __init__(self, status_topic: str = STATUS_TOPIC,
                 partial_topic: str = PARTIAL_TOPIC,
                 output_topic: str = OUTPUT_TOPIC):
        """Initialize session publisher.

        Args:
            status_topic: Topic for SessionStatus updates
            partial_topic: Topic for live interim text
            output_topic: Topic for the final SessionOutput
        """
        self.status_topic = status_topic
        self.partial_topic = partial_topic
        self.output_topic = output_topic
        logger.info(f"SessionPublisher initialized with topics: {status_topic}, {partial_topic}, {output_topic}")

    def publish_status(self, status: SessionStatus) -> None:
        pub.sendMessage(self.status_topic, status=status)
        logger.debug(f"Published status: {status.state.value} - {status.message}")

    def publish_partial(self, text: str, segment_text: str) -> None:
        pub.sendMessage(self.partial_topic, text=text, segment_text=segment_text)

    def publish_output(self, output: SessionOutput) -> None:
        pub.sendMessage(self.output_topic, output=output)
        logger.debug(f"Published session output ({output.mode.value}, {len(output.text)} chars)")
