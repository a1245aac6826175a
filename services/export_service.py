"""
services/export_service.py
---------------------------
Generates CSV and Excel exports of an item's connections.
"""

import io

import pandas as pd

from models.asset import ItemRef
from models.connection import ConnectedItem
from services.connection_service import ConnectionService
from utils.logger import get_logger

logger = get_logger(__name__)

COLUMNS = ["Connection", "Type", "ID", "Name", "Entity", "Serial number", "Inventory number",
           "Automatic inventory", "Deleted"]


class ExportService:
    """Generates downloadable connection reports in CSV and Excel formats."""

    def __init__(self, connection_service: ConnectionService | None = None):
        self.connection_service = connection_service or ConnectionService()

    def export_connections_csv(self, item_ref: ItemRef) -> io.BytesIO:
        """
        Export the items connected to `item_ref` as a CSV file.

        Returns:
            A BytesIO buffer containing the CSV data.
        """
        df = self._frame(self.connection_service.list_connections(item_ref))
        buffer = io.BytesIO()
        df.to_csv(buffer, index=False, encoding="utf-8-sig")
        buffer.seek(0)
        logger.info(f"Exported {len(df)} connection(s) of {item_ref} as CSV")
        return buffer

    def export_connections_excel(self, item_ref: ItemRef) -> io.BytesIO:
        """
        Export the items connected to `item_ref` as an Excel (.xlsx) file,
        with a per-type summary sheet.
        """
        df = self._frame(self.connection_service.list_connections(item_ref))

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Connections", index=False)

            if not df.empty:
                summary = df.groupby("Type")["ID"].count().reset_index()
                summary.columns = ["Type", "Count"]
                summary.to_excel(writer, sheet_name="Summary", index=False)

        buffer.seek(0)
        logger.info(f"Exported {len(df)} connection(s) of {item_ref} as Excel")
        return buffer

    @staticmethod
    def _frame(items: list[ConnectedItem]) -> pd.DataFrame:
        data = [
            {
                "Connection": i.linkid,
                "Type": i.itemtype,
                "ID": i.id,
                "Name": i.name,
                "Entity": i.entities_id,
                "Serial number": i.serial or "",
                "Inventory number": i.otherserial or "",
                "Automatic inventory": "Yes" if i.link_is_dynamic else "No",
                "Deleted": "Yes" if i.is_deleted else "No",
            }
            for i in items
        ]
        return pd.DataFrame(data, columns=COLUMNS)
