"""In-process document model for the registration wizard page.

The draft manager needs the slice of the DOM contract the wizard relies on:
forms, fields identified by ``name`` falling back to ``id``, file inputs
holding File objects, class names, element ids, sibling insertion and
``input``/``change`` event dispatch. The wizard builds a ``Page`` from these
elements and the draft manager reads and mutates it the way the browser
component mutates the real DOM.

Builders at the bottom (``form``, ``text_input``, ``checkbox``...) keep page
construction readable in the wizard and in tests.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

FIELD_TAGS = ("input", "textarea", "select")


@dataclass
class DraftFile:
    """A File object: bytes plus the metadata the browser keeps with them."""

    name: str
    data: bytes
    mime_type: str = "application/octet-stream"
    last_modified: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(eq=False)
class Element:
    """A DOM element. Compared by identity, like the real thing."""

    tag: str
    id: str = ""
    name: str = ""
    type: str = ""             # input type: text, checkbox, radio, file, password...
    value: str = ""
    checked: bool = False
    multiple: bool = False     # <select multiple>
    selected: list[str] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    hidden: bool = False
    files: list[DraftFile] = field(default_factory=list)
    children: list[Element] = field(default_factory=list)
    parent: Element | None = field(default=None, repr=False)
    listeners: dict[str, list[Callable]] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        for child in self.children:
            child.parent = self

    # ── Tree mutation ────────────────────────────────────────────────────

    def append(self, *children: Element) -> Element:
        for child in children:
            child.detach()
            child.parent = self
            self.children.append(child)
        return self

    def insert_first(self, child: Element) -> Element:
        child.detach()
        child.parent = self
        self.children.insert(0, child)
        return child

    def insert_after(self, new: Element) -> Element:
        """Insert *new* as the next sibling of this element."""
        if self.parent is None:
            raise ValueError(f"<{self.tag}> has no parent to insert into")
        new.detach()
        siblings = self.parent.children
        siblings.insert(siblings.index(self) + 1, new)
        new.parent = self.parent
        return new

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def clear_children(self) -> None:
        for child in list(self.children):
            child.detach()

    # ── Queries ──────────────────────────────────────────────────────────

    def iter_descendants(self) -> Iterator[Element]:
        """Yield descendants in document order (not including self)."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter_descendants() if predicate(el)]

    def find(self, predicate: Callable[[Element], bool]) -> Element | None:
        for el in self.iter_descendants():
            if predicate(el):
                return el
        return None

    def find_by_name(self, name: str) -> list[Element]:
        return self.find_all(lambda el: el.name == name)

    def find_by_id(self, element_id: str) -> Element | None:
        if not element_id:
            return None
        return self.find(lambda el: el.id == element_id)

    def find_by_class(self, class_name: str) -> list[Element]:
        return self.find_all(lambda el: el.has_class(class_name))

    def find_by_attr(self, attr: str, value: str) -> Element | None:
        return self.find(lambda el: el.attrs.get(attr) == value)

    def closest(self, predicate: Callable[[Element], bool]) -> Element | None:
        el: Element | None = self
        while el is not None:
            if predicate(el):
                return el
            el = el.parent
        return None

    def has_class(self, class_name: str) -> bool:
        return class_name in self.classes

    @property
    def is_field(self) -> bool:
        return self.tag in FIELD_TAGS

    @property
    def field_name(self) -> str:
        """Identity used for drafts: ``name`` falling back to ``id``."""
        return self.name or self.id

    def text_content(self) -> str:
        parts = [self.text] if self.text else []
        parts.extend(child.text_content() for child in self.children)
        return " ".join(p for p in parts if p)

    # ── Events ───────────────────────────────────────────────────────────

    def add_listener(self, event: str, callback: Callable[[Element], object]) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Callable[[Element], object]) -> None:
        callbacks = self.listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def dispatch(self, event: str) -> None:
        for callback in list(self.listeners.get(event, [])):
            callback(self)


class Page:
    """A loaded page: its URL and document body."""

    def __init__(self, body: Element | None = None, url: str = "") -> None:
        self.body = body or Element("body")
        self.url = url

    def forms(self) -> list[Element]:
        return self.body.find_all(lambda el: el.tag == "form")

    def get_element_by_id(self, element_id: str) -> Element | None:
        return self.body.find_by_id(element_id)

    def find_by_attr(self, attr: str, value: str) -> Element | None:
        return self.body.find_by_attr(attr, value)


# ── User interaction ─────────────────────────────────────────────────────────


def type_into(el: Element, value: str) -> None:
    """Set a field value and fire ``input`` the way typing does."""
    el.value = value
    el.dispatch("input")


def set_checked(el: Element, checked: bool = True) -> None:
    el.checked = checked
    el.dispatch("change")


def choose_files(el: Element, *files: DraftFile) -> None:
    """Replace a file input's selection and fire ``change``."""
    el.files = list(files)
    el.dispatch("change")


# ── Builders ─────────────────────────────────────────────────────────────────


def element(tag: str, *children: Element, **kwargs) -> Element:
    return Element(tag, children=list(children), **kwargs)


def form(*children: Element, id: str = "", **kwargs) -> Element:
    return Element("form", id=id, children=list(children), **kwargs)


def text_input(name: str = "", value: str = "", *, id: str = "", type: str = "text", **kwargs) -> Element:
    return Element("input", id=id, name=name, type=type, value=value, **kwargs)


def password_input(name: str = "", *, id: str = "", value: str = "") -> Element:
    return Element("input", id=id, name=name, type="password", value=value)


def checkbox(name: str, value: str = "on", *, checked: bool = False, id: str = "", **kwargs) -> Element:
    return Element("input", id=id, name=name, type="checkbox", value=value, checked=checked, **kwargs)


def radio(name: str, value: str, *, checked: bool = False, id: str = "") -> Element:
    return Element("input", id=id, name=name, type="radio", value=value, checked=checked)


def textarea(name: str = "", value: str = "", *, id: str = "", **kwargs) -> Element:
    return Element("textarea", id=id, name=name, value=value, **kwargs)


def select(name: str, value: str = "", *, id: str = "", multiple: bool = False,
           selected: list[str] | None = None) -> Element:
    return Element("select", id=id, name=name, value=value, multiple=multiple,
                   selected=list(selected or []))


def file_input(name: str = "", *, id: str = "") -> Element:
    return Element("input", id=id, name=name, type="file")
