"""Repeatable field groups (the greetings list).

A repeatable group is a container element holding N items of the same
shape, e.g. ``#greetings-list > .greeting-item`` each with a title input and
a content textarea. The snapshot store keeps such groups under their own key
as a positional list, because the generic per-field restore cannot create
missing items.

List mutations (add, remove, move) re-render explicitly through
``RepeatableGroup.render`` so item numbering and button states never depend
on observing the tree.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.page import Element, Page


@dataclass(frozen=True)
class GroupField:
    part: str          # key inside each snapshot entry
    name: str          # field name attribute
    class_name: str
    tag: str = "input"


@dataclass(frozen=True)
class RepeatableGroup:
    key: str
    container_ids: tuple[str, ...]
    item_class: str
    fields: tuple[GroupField, ...]

    # ── Lookup ───────────────────────────────────────────────────────────

    def container(self, page: Page) -> Element | None:
        for container_id in self.container_ids:
            el = page.get_element_by_id(container_id)
            if el is not None:
                return el
        return None

    def items(self, page: Page) -> list[Element]:
        container = self.container(page)
        if container is None:
            return []
        return [c for c in container.children if c.has_class(self.item_class)]

    def owns(self, page: Page, el: Element) -> bool:
        """True when *el* sits inside this group's container."""
        container = self.container(page)
        return container is not None and el.closest(lambda e: e is container) is not None

    def _part(self, item: Element, gf: GroupField) -> Element | None:
        return item.find(lambda el: el.name == gf.name or el.has_class(gf.class_name))

    # ── Read / write ─────────────────────────────────────────────────────

    def read(self, page: Page) -> list[dict[str, str]]:
        entries = []
        for item in self.items(page):
            entry = {}
            for gf in self.fields:
                el = self._part(item, gf)
                entry[gf.part] = el.value if el is not None else ""
            entries.append(entry)
        return entries

    def new_item(self) -> Element:
        item = Element("div", classes=[self.item_class])
        for gf in self.fields:
            item.append(Element(gf.tag, name=gf.name, classes=[gf.class_name],
                                type="text" if gf.tag == "input" else ""))
        item.append(
            Element("button", type="button", classes=["btn-move-up"], text="↑"),
            Element("button", type="button", classes=["btn-move-down"], text="↓"),
        )
        return item

    def populate(self, page: Page, entries: list) -> bool:
        """Make the container hold exactly ``len(entries)`` items, in order.

        Existing items are reused positionally, missing ones created, extra
        ones removed, so populating twice leaves the same tree. Returns True
        when any non-empty value was written.
        """
        container = self.container(page)
        if container is None:
            return False

        items = self.items(page)
        for extra in items[len(entries):]:
            extra.detach()
        while len(items) < len(entries):
            item = self.new_item()
            container.append(item)
            items.append(item)

        populated = False
        for item, entry in zip(items, entries):
            if not isinstance(entry, dict):
                entry = {}
            for gf in self.fields:
                el = self._part(item, gf)
                if el is None:
                    continue
                value = entry.get(gf.part, "")
                el.value = value if isinstance(value, str) else str(value)
                populated = populated or bool(el.value)

        self.render(page)
        return populated

    # ── Explicit list mutations ──────────────────────────────────────────

    def add_item(self, page: Page, **values: str) -> Element | None:
        container = self.container(page)
        if container is None:
            return None
        item = self.new_item()
        for gf in self.fields:
            el = self._part(item, gf)
            if el is not None:
                el.value = values.get(gf.part, "")
        container.append(item)
        self.render(page)
        return item

    def remove_item(self, page: Page, index: int) -> None:
        items = self.items(page)
        if 0 <= index < len(items):
            items[index].detach()
            self.render(page)

    def move_item(self, page: Page, index: int, direction: str) -> None:
        container = self.container(page)
        items = self.items(page)
        target = index - 1 if direction == "up" else index + 1
        if container is None or not (0 <= index < len(items)) or not (0 <= target < len(items)):
            return
        a, b = container.children.index(items[index]), container.children.index(items[target])
        container.children[a], container.children[b] = container.children[b], container.children[a]
        self.render(page)

    def render(self, page: Page) -> None:
        """Renumber items and refresh the move buttons' disabled state."""
        items = self.items(page)
        last = len(items) - 1
        for i, item in enumerate(items):
            item.attrs["data-index"] = str(i)
            for button in item.find_by_class("btn-move-up"):
                _set_disabled(button, i == 0)
            for button in item.find_by_class("btn-move-down"):
                _set_disabled(button, i == last)


def _set_disabled(button: Element, disabled: bool) -> None:
    if disabled:
        button.attrs["disabled"] = "disabled"
    else:
        button.attrs.pop("disabled", None)


GREETINGS = RepeatableGroup(
    key="greetings",
    container_ids=("greetings-list", "greetings-container"),
    item_class="greeting-item",
    fields=(
        GroupField("title", "greeting_title[]", "greeting-title", "input"),
        GroupField("content", "greeting_content[]", "greeting-content", "textarea"),
    ),
)

DEFAULT_GROUPS: tuple[RepeatableGroup, ...] = (GREETINGS,)
