"""Entry point for running the signer with python -m tronsigner."""

from tronsigner.main import main

if __name__ == "__main__":
    main()
