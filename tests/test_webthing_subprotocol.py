from http import HTTPStatus

import pytest

from webthing_fastapi.webthing_subprotocol import (
    IncomingMessage,
    PropertyStatusMessage,
    ValidationError,
    error_message,
)


def test_error_message():
    assert error_message(HTTPStatus.NOT_FOUND, "Invalid thing_id") == {
        "messageType": "error",
        "data": {"status": "404 Not Found", "message": "Invalid thing_id"},
    }


def test_error_message_with_request():
    request = {"messageType": "explode"}
    message = error_message(HTTPStatus.BAD_REQUEST, "Oops", request=request)
    assert message["data"]["status"] == "400 Bad Request"
    assert message["data"]["request"] == request


def test_property_status():
    message = PropertyStatusMessage(data={"on": True}).model_dump()
    assert message == {"messageType": "propertyStatus", "data": {"on": True}}


def test_incoming_message():
    message = IncomingMessage.model_validate(
        {"messageType": "setProperty", "data": {"on": False}, "id": 1}
    )
    assert message.messageType == "setProperty"
    assert message.data == {"on": False}


@pytest.mark.parametrize(
    "raw",
    [{"messageType": "setProperty"}, {"data": {}}, {"messageType": 1, "data": {}}],
)
def test_invalid_incoming_message(raw):
    with pytest.raises(ValidationError):
        IncomingMessage.model_validate(raw)
