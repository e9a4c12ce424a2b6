from tel.ui.app import TableBrowserApp

__all__ = ["TableBrowserApp"]
