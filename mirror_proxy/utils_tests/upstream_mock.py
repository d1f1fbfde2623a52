from typing import List, Optional

import httpx


class UpstreamRecorder:
    """httpx.MockTransport handler that records what the proxy sent upstream."""

    def __init__(
        self,
        status_code: int = 200,
        headers: Optional[List] = None,
        content: bytes = b"upstream body",
    ):
        self.status_code = status_code
        self.headers = headers if headers is not None else [("content-type", "image/png")]
        self.content = content
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Streamed like a real network response so aiter_raw() works
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            stream=httpx.ByteStream(self.content),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]
