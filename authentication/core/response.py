def standardized_response(success=True, data=None, message=None, error=None, error_code=None, **extra):
    """
    Build the response envelope shared by every endpoint.

    Keys with a None value are omitted so clients can rely on
    `success` plus whichever of data/message/error applies.
    """
    payload = {"success": success}
    if data is not None:
        payload["data"] = data
    if message is not None:
        payload["message"] = message
    if error is not None:
        payload["error"] = error
    if error_code is not None:
        payload["error_code"] = error_code
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload
