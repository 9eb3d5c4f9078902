# termflex/controllers.py
from typing import Callable, List


class TextEditingController:
    """
    A controller for an editable text field.

    Holds the text and the cursor position of an input, applies edit
    operations and notifies listeners when the text changes.

    :param text: The initial text this controller should have.
    """
    def __init__(self, text: str = ""):
        self._text = text
        self._cursor = len(text)
        self._listeners: List[Callable[[], None]] = []

    @property
    def text(self) -> str:
        """The current text value of the controller."""
        return self._text

    @text.setter
    def text(self, new_value: str):
        """Sets the text value, keeps the cursor in range and notifies listeners."""
        if self._text != new_value:
            self._text = new_value
            self._cursor = min(self._cursor, len(new_value))
            self._notify_listeners()

    @property
    def cursor(self) -> int:
        return self._cursor

    @cursor.setter
    def cursor(self, position: int):
        self._cursor = max(0, min(position, len(self._text)))

    def insert(self, value: str):
        """Insert ``value`` at the cursor and move the cursor past it."""
        if not value:
            return
        position = self._cursor
        self._cursor = position + len(value)
        self.text = self._text[:position] + value + self._text[position:]

    def backspace(self):
        if self._cursor == 0:
            return
        position = self._cursor - 1
        self._cursor = position
        self.text = self._text[:position] + self._text[position + 1:]

    def delete(self):
        if self._cursor >= len(self._text):
            return
        self.text = self._text[:self._cursor] + self._text[self._cursor + 1:]

    def move_left(self):
        self.cursor = self._cursor - 1

    def move_right(self):
        self.cursor = self._cursor + 1

    def home(self):
        self._cursor = 0

    def end(self):
        self._cursor = len(self._text)

    def add_listener(self, listener: Callable[[], None]):
        """Register a closure to be called when the text in the controller changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]):
        """Remove a previously registered closure."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self):
        """Calls all registered listeners."""
        for listener in self._listeners:
            listener()

    def clear(self):
        """Clears the text in the controller."""
        self._cursor = 0
        self.text = ""

    def __repr__(self):
        return f"TextEditingController(text='{self.text}', cursor={self._cursor})"
