"""Deterministic ordering and keyset pagination for round results."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from roundsearch.domain.rounds import models, policy


@dataclass(slots=True, frozen=True)
class PageCursor:
	last_time: datetime
	last_id: str

	def key(self) -> tuple[datetime, str]:
		return (self.last_time, self.last_id)


@dataclass(slots=True)
class Page:
	items: list[models.RoundCandidate]
	next_cursor: Optional[PageCursor]


def encode_cursor(cursor: PageCursor) -> str:
	payload = {"t": cursor.last_time.isoformat(), "id": cursor.last_id}
	blob = json.dumps(payload, separators=(",", ":"))
	return base64.urlsafe_b64encode(blob.encode("utf-8")).decode("ascii")


def decode_cursor(value: str) -> PageCursor:
	try:
		decoded = base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")
		data = json.loads(decoded)
		last_time = datetime.fromisoformat(data["t"])
		last_id = str(data["id"])
	except Exception as exc:
		raise policy.SearchValidationError("bad_cursor") from exc
	if last_time.tzinfo is None:
		last_time = last_time.replace(tzinfo=timezone.utc)
	return PageCursor(last_time=last_time, last_id=last_id)


def sort_candidates(candidates: Iterable[models.RoundCandidate]) -> list[models.RoundCandidate]:
	"""Effective date ascending (undated last), then round id."""

	return sorted(candidates, key=lambda candidate: candidate.sort_key())


def after_cursor(candidate: models.RoundCandidate, cursor: Optional[PageCursor]) -> bool:
	if cursor is None:
		return True
	return candidate.sort_key() > cursor.key()


def paginate(
	candidates: Iterable[models.RoundCandidate],
	*,
	page_size: int,
	cursor: Optional[PageCursor] = None,
) -> Page:
	"""First ``page_size`` sorted candidates strictly after ``cursor``."""

	page: list[models.RoundCandidate] = []
	has_more = False
	for candidate in sort_candidates(candidates):
		if not after_cursor(candidate, cursor):
			continue
		if len(page) < page_size:
			page.append(candidate)
		else:
			has_more = True
			break

	next_cursor = None
	if has_more and page:
		last_time, last_id = page[-1].sort_key()
		next_cursor = PageCursor(last_time=last_time, last_id=last_id)
	return Page(items=page, next_cursor=next_cursor)
