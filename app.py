"""
Frame Enhancer v1.0
"""
import sys

from core.config import Config
from core.logger import AppLogger
from core.remote import build_gemini_services
from core.session import ProcessingSession
from ui.app_ui import AppUI


def main():
    """
    Main entry point for the application.

    Initializes configuration, logging, the remote services, the session and the Gradio UI.
    """
    logger = None
    try:
        config = Config()
        logger = AppLogger(config=config)
        classifier, enhancer = build_gemini_services(config, logger)
        session = ProcessingSession(config, logger, classifier, enhancer)

        app_ui = AppUI(config, logger, session)
        demo = app_ui.build_ui()
        logger.info("Frame Enhancer v1.0\nStarting application...")
        demo.launch()
    except KeyboardInterrupt:
        if logger:
            logger.info("\nApplication stopped by user")
    except Exception as e:
        if logger:
            logger.error(f"Error starting application: {e}", exc_info=True)
        else:
            print(f"Error starting application: {e}")
        sys.exit(1)
    finally:
        if logger:
            logger.close()


if __name__ == "__main__":
    main()
