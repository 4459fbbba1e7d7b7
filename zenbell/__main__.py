"""Allow running ZenBell as a module: python -m zenbell."""

import logging
import sys

from PyQt6.QtWidgets import QApplication

from .app import ZenBellApp


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("ZenBell")
    app.setOrganizationName("ZenBell")

    window = ZenBellApp()
    window.show()
    logging.getLogger(__name__).info("ZenBell ready")

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
