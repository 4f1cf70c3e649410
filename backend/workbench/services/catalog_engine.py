from typing import List, Dict, Any, Optional, Iterable
import pandas as pd
import logging

from workbench.models.catalog_schema import ProfileCatalogRow

logger = logging.getLogger("workbench-catalog")


class ProfileCatalog:
    """
    Owned cache of the collaborator's profile catalog: option lists for the
    profile pickers plus section-property rows keyed by profile name.
    """

    def __init__(self):
        self._alum_names: List[str] = []
        self._steel_names: List[str] = []
        self._rows = pd.DataFrame(columns=["profile_name"]).set_index("profile_name")

    def load(
        self,
        alum_names: Iterable[str] = (),
        steel_names: Iterable[str] = (),
        rows: Iterable[Any] = (),
    ) -> None:
        """Install names and data rows, replacing whatever was cached."""
        self._alum_names = [str(n) for n in alum_names]
        self._steel_names = [str(n) for n in steel_names]

        records = []
        for row in rows:
            if not isinstance(row, ProfileCatalogRow):
                row = ProfileCatalogRow.model_validate(row)
            records.append(row.model_dump())

        if records:
            frame = pd.DataFrame.from_records(records)
            # Later rows win, matching a name → row dict cache
            frame = frame.drop_duplicates(subset="profile_name", keep="last")
            self._rows = frame.set_index("profile_name")
        else:
            self._rows = pd.DataFrame(columns=["profile_name"]).set_index("profile_name")

        logger.info(
            "Profile catalog loaded: %d alum, %d steel, %d data rows",
            len(self._alum_names), len(self._steel_names), len(self._rows),
        )

    async def refresh(self, client) -> bool:
        """
        Pull names and data through a PreviewClient.  On any collaborator
        failure the catalog is left empty rather than raising.
        """
        names = await client.get_profile_names()
        data = await client.get_profile_data()
        if names is None:
            logger.warning("Profile names unavailable; catalog left empty")
            self.load()
            return False
        rows: List[ProfileCatalogRow] = []
        if data is not None:
            rows = list(data.alum_profiles_data) + list(data.steel_profiles_data)
        self.load(names.alum_profiles, names.steel_profiles, rows)
        return True

    def alum_names(self) -> List[str]:
        return list(self._alum_names)

    def steel_names(self) -> List[str]:
        return list(self._steel_names)

    def first_alum_name(self, prefix: str) -> Optional[str]:
        for name in self._alum_names:
            if name.startswith(prefix):
                return name
        return None

    def lookup(self, name: Optional[str]) -> Optional[Dict[str, Any]]:
        """Section properties for ``name`` (blank columns dropped), or None."""
        if not name or name not in self._rows.index:
            return None
        series = self._rows.loc[name]
        row: Dict[str, Any] = {"profile_name": name}
        for key, value in series.items():
            if value is None or (isinstance(value, float) and pd.isna(value)):
                continue
            row[key] = value.item() if hasattr(value, "item") else value
        return row
