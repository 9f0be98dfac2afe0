import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Reject requests whose X-Api-Key header does not carry the API_SERVER_API_KEY setting.

    Raises:
        HTTPException: 401 if the header is missing or the key does not match.
    """
    expected_key = request.app.state.helper_config.get_string_val("API_SERVER_API_KEY")
    if not x_api_key or not secrets.compare_digest(x_api_key.encode("utf-8"), expected_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
