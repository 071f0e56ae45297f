from __future__ import annotations

from .api.main import create_app
from .request_context import install_request_id_middleware

app = create_app()
install_request_id_middleware(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

__all__ = ["app"]
