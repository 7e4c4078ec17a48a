"""Domain primitives: scalar aliases.

Scalar aliases may be promoted to proper value objects later without changing imports.
"""

from __future__ import annotations

type BookId = str
type ReadingLevel = str
type Isbn = str
