"""Entry point module for running the tail viewer via `python -m tailview`."""

from tailview.app import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
