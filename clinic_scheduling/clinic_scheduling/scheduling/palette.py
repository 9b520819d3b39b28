"""
Provider Colors

Stable visual identity per provider. The palette index comes from the
provider's position in the full roster, so every view must share the
same roster ordering. ProviderPalette freezes that mapping once per
session.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class PaletteEntry:
	name: str
	background: str
	border: str
	text: str
	accent: str
	light: str


PROVIDER_PALETTE: Tuple[PaletteEntry, ...] = (
	PaletteEntry("sky", "#f0f9ff", "#38bdf8", "#075985", "#0ea5e9", "hsl(199 89% 96%)"),
	PaletteEntry("violet", "#f5f3ff", "#a78bfa", "#5b21b6", "#8b5cf6", "hsl(270 80% 96%)"),
	PaletteEntry("amber", "#fffbeb", "#fbbf24", "#92400e", "#f59e0b", "hsl(45 93% 95%)"),
	PaletteEntry("rose", "#fff1f2", "#fb7185", "#9f1239", "#f43f5e", "hsl(350 80% 96%)"),
	PaletteEntry("teal", "#f0fdfa", "#2dd4bf", "#115e59", "#14b8a6", "hsl(166 76% 95%)"),
	PaletteEntry("indigo", "#eef2ff", "#818cf8", "#3730a3", "#6366f1", "hsl(226 83% 96%)"),
)


def color_for(
	provider_id: Optional[str],
	full_roster: Sequence[str],
	palette: Sequence[PaletteEntry] = PROVIDER_PALETTE
) -> PaletteEntry:
	"""
	Color de un profesional según su posición en el roster completo.

	Args:
		provider_id: profesional
		full_roster: todos los profesionales, en el orden de la sesión
		palette: paleta a usar

	Returns:
		PaletteEntry: palette[index % len(palette)], o palette[0] si no está
	"""
	if not provider_id:
		return palette[0]
	try:
		index = list(full_roster).index(provider_id)
	except ValueError:
		return palette[0]
	return palette[index % len(palette)]


class ProviderPalette:
	"""
	Mapeo explícito provider_id -> PaletteEntry construido una vez por sesión.

	Se inyecta en cada vista en vez de recalcular índices en cada llamada.
	"""

	def __init__(
		self,
		mapping: Dict[str, PaletteEntry],
		palette: Sequence[PaletteEntry] = PROVIDER_PALETTE
	):
		self._mapping = dict(mapping)
		self._palette = tuple(palette)

	@classmethod
	def from_roster(
		cls,
		full_roster: Iterable[str],
		palette: Sequence[PaletteEntry] = PROVIDER_PALETTE
	) -> "ProviderPalette":
		roster = list(full_roster)
		mapping = {}
		for provider_id in roster:
			# Un id repetido conserva su primera posición
			if provider_id not in mapping:
				mapping[provider_id] = color_for(provider_id, roster, palette)
		return cls(mapping, palette)

	def __getitem__(self, provider_id: Optional[str]) -> PaletteEntry:
		return self.get(provider_id)

	def __contains__(self, provider_id: object) -> bool:
		return provider_id in self._mapping

	def __len__(self) -> int:
		return len(self._mapping)

	def get(self, provider_id: Optional[str]) -> PaletteEntry:
		"""Color del profesional; palette[0] si es None o desconocido."""
		if provider_id is None:
			return self._palette[0]
		return self._mapping.get(provider_id, self._palette[0])

	def column_tint(self, column_index: int) -> str:
		"""Color claro para el encabezado de columna en modo por profesional."""
		return self._palette[column_index % len(self._palette)].light

	def as_dict(self) -> Dict[str, PaletteEntry]:
		return dict(self._mapping)
