"""Private processor entry point. Use --help for usage."""

from core.web.runner import run_service
from processor.app import SERVICE_NAME, create_app


def main() -> None:
    run_service(
        "processor",
        SERVICE_NAME,
        create_app,
        description="Run the private processor service",
    )


if __name__ == "__main__":
    main()
