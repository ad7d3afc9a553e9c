"""Run the IRIS orchestrator API: python -m iris"""

from iris.application.app import main

if __name__ == "__main__":
    main()
