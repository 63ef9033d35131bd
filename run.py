import os

from iam_reviewer.logger import get_logger


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    display_url = f"http://localhost:{port}"

    logger = get_logger()
    logger.info(
        "Starting IAM Wildcard Reviewer webhook service on {display_url} (binding to {host}:{port})",
        display_url=display_url,
        host=host,
        port=port,
    )

    import uvicorn

    uvicorn.run(
        app="iam_reviewer.main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "").lower() in {"1", "true", "yes", "on"},
        workers=1,
    )


if __name__ == "__main__":
    main()
