import json
import logging

import paho.mqtt.client as mqtt

from thermoswitch.models import Snapshot

logger = logging.getLogger(__name__)


class MosquittoClient():
    """Publish-only MQTT client. Nothing is ever read back from the broker."""

    def __init__(self, host, port, use_ssl=False, ca_certs=None):
        self.host = host
        self.port = port
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if use_ssl:
            self.client.tls_set(ca_certs=ca_certs)

        def on_connect(client, userdata, flags, reason_code, properties):
            if reason_code.is_failure:
                logger.error(f"[MQTT] Connection failed: {reason_code}")
            else:
                logger.info(f"[MQTT] Connected to broker {self.host}:{self.port}")

        def on_disconnect(client, userdata, flags, reason_code, properties):
            logger.info(f"[MQTT] Disconnected ({reason_code})")

        self.client.on_connect = on_connect
        self.client.on_disconnect = on_disconnect

    def connect(self, username=None, password=None):
        if username:
            self.client.username_pw_set(username, password)
        self.client.connect(self.host, self.port)
        self.client.loop_start()  # Start background thread to process network traffic

    def publish(self, topic, message, retain=False):
        self.client.publish(topic, message, retain=retain)

    def disconnect(self):
        self.client.loop_stop()  # Stop background thread
        self.client.disconnect()


class StatusPublisher:
    """
    Control loop observer publishing each snapshot.

    Topics:
        <topic>/status: JSON snapshot
        <topic>/phase: loop phase, retained
    """

    def __init__(self, client, topic="thermoswitch"):
        self._client = client
        self._topic = topic.rstrip("/")
        self._last_phase = None

    def __call__(self, snapshot: Snapshot):
        self._client.publish(f"{self._topic}/status", json.dumps(snapshot.to_dict()))
        if snapshot.phase != self._last_phase:
            self._last_phase = snapshot.phase
            self._client.publish(f"{self._topic}/phase", snapshot.phase.value, retain=True)
