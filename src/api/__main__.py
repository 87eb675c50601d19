"""Public API entry point. Use --help for usage."""

from api.app import SERVICE_NAME, create_app
from core.web.runner import run_service


def main() -> None:
    run_service(
        "api",
        SERVICE_NAME,
        create_app,
        description="Run the public API service",
    )


if __name__ == "__main__":
    main()
