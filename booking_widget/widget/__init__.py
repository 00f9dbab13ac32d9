from booking_widget.widget.chat_widget import ChatWidget, Pill

__all__ = ["ChatWidget", "Pill"]
