"""
Tests for score update delivery.
"""
import json
import threading

import httpx
import numpy as np

from app.core.notifier import ScoreNotifier, WebhookNotifier

IMAGE = np.zeros((4, 4, 3), dtype=np.uint8)


def test_publish_reaches_listeners():
    received = []
    done = threading.Event()

    def listener(image, score_text):
        received.append(score_text)
        done.set()

    notifier = ScoreNotifier()
    notifier.add_listener(listener)
    notifier.publish(IMAGE, "Score: 60 (T20)")
    notifier.shutdown(wait=True)

    assert done.is_set()
    assert received == ["Score: 60 (T20)"]


def test_failing_listener_does_not_stop_others():
    received = []

    def broken(image, score_text):
        raise RuntimeError("display gone")

    notifier = ScoreNotifier()
    notifier.add_listener(broken)
    notifier.add_listener(lambda image, text: received.append(text))
    notifier.publish(IMAGE, "Score: 5 (S5)")
    notifier.shutdown(wait=True)

    assert received == ["Score: 5 (S5)"]


def test_removed_listener_is_not_called():
    received = []
    listener = lambda image, text: received.append(text)  # noqa: E731

    notifier = ScoreNotifier()
    notifier.add_listener(listener)
    notifier.remove_listener(listener)
    notifier.publish(IMAGE, "Score: 0 ()")
    notifier.shutdown(wait=True)

    assert received == []


def test_webhook_posts_payload():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    webhook = WebhookNotifier("http://scores.local/update", "board-1", client=client)

    webhook(IMAGE, "Score: 256")

    assert len(requests) == 1
    assert str(requests[0].url) == "http://scores.local/update"
    assert json.loads(requests[0].content) == {"sessionId": "board-1", "scoreText": "Score: 256"}


def test_webhook_errors_are_logged_not_raised():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    webhook = WebhookNotifier("http://scores.local/update", "board-1", client=client)

    webhook(IMAGE, "Score: 256")
    webhook.close()


def test_build_payload():
    webhook = WebhookNotifier("http://scores.local/update", "b", client=httpx.Client())
    payload = webhook.build_payload("Score: 1")
    webhook.close()

    assert payload == {"sessionId": "b", "scoreText": "Score: 1"}
