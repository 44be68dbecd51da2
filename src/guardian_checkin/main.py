"""Process entrypoint: serve the API with the scheduler attached."""

import os

import uvicorn


def main() -> None:
    """Run the ASGI app; the lifespan starts the due-session scheduler."""
    uvicorn.run(
        "guardian_checkin.api.asgi:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
