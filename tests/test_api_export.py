"""Power BI export API tests — JSON snapshot and XLSX workbook."""

import io
import json

from openpyxl import load_workbook


def test_json_export(client, demo):
    res = client.get(f"/api/v1/export/powerbi?project_id={demo['project_id']}")
    assert res.status_code == 200
    assert res.mimetype == "application/json"
    assert (
        f'filename="powerbi-export-{demo["project_id"]}.json"'
        in res.headers["Content-Disposition"]
    )

    snapshot = json.loads(res.get_data(as_text=True))
    assert snapshot["metadata"]["project"]["code"] == "DEMO-01"
    assert snapshot["metadata"]["systems_count"] == 1
    assert snapshot["metadata"]["subsystems_count"] == 2
    assert len(snapshot["itrs"]) == 15
    assert len(snapshot["tags"]) == 2
    assert len(snapshot["preservation_tasks"]) == 3
    assert snapshot["kpis"] == {
        "total_itrs": 15,
        "completed_itrs": 9,
        "total_punch_a": 3,
        "open_punch_a": 1,
        "overdue_preservation": 1,
    }


def test_json_export_restricted_to_other_system(client, demo):
    res = client.get(
        f"/api/v1/export/powerbi?project_id={demo['project_id']}&system_id=other"
    )
    snapshot = res.get_json()
    assert snapshot["systems"] == []
    assert snapshot["kpis"]["total_itrs"] == 0


def test_xlsx_export(client, demo):
    res = client.get(f"/api/v1/export/powerbi?project_id={demo['project_id']}&format=xlsx")
    assert res.status_code == 200
    assert res.mimetype.endswith("spreadsheetml.sheet")

    wb = load_workbook(io.BytesIO(res.data))
    assert wb.sheetnames == [
        "KPIs", "Systems", "Subsystems", "ITRs", "Tags", "Punch Items", "Preservation",
    ]
    kpis = {
        wb["KPIs"].cell(row=r, column=1).value: wb["KPIs"].cell(row=r, column=2).value
        for r in range(5, 10)
    }
    assert kpis["total_itrs"] == 15
    assert kpis["open_punch_a"] == 1
    assert wb["ITRs"].max_row == 16
    assert wb["ITRs"]["A1"].value == "id"


def test_export_errors(client, demo):
    assert client.get("/api/v1/export/powerbi").status_code == 400
    res = client.get(f"/api/v1/export/powerbi?project_id={demo['project_id']}&format=pdf")
    assert res.status_code == 400
    assert client.get("/api/v1/export/powerbi?project_id=missing").status_code == 404
