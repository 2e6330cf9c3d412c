import os

from wallfeed.relay import run_relay


def main() -> None:
    mode = (os.environ.get("WALLFEED_MODE") or "daemon").lower().strip()
    run_relay(
        config_path=os.environ.get("WALLFEED_CONFIG", "config.yaml"),
        max_cycles=1 if mode == "once" else None,
    )


# python -m wallfeed
if __name__ == "__main__":
    main()
