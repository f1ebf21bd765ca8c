"""Package entrypoint.

`python -m agent_bridge` launches the local agent host.
"""

from agent_bridge.host.main import main


if __name__ == "__main__":
    main()
