import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("FLOWLY_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # serves the chat assistant api
    uvicorn.run(
        "flowly.api.routes:app",
        host=os.environ.get("FLOWLY_HOST", "0.0.0.0"),
        port=int(os.environ.get("FLOWLY_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
