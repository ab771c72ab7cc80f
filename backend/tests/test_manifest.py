from farewatch.services.providers.manifest import format_name, format_vietjet_manifest, strip_diacritics


def test_strip_diacritics_handles_d_stroke():
    assert strip_diacritics("Đặng Thị Ánh") == "Dang Thi Anh"
    assert strip_diacritics("đường") == "duong"


def test_format_name_title_cases_each_word():
    assert format_name("  NGUYỄN   văn đức ") == "Nguyen Van Duc"
    assert format_name(None) == ""


def test_manifest_groups_passengers():
    passengers = [
        {
            "last_name": "Trần",
            "first_name": "Minh",
            "passport": "C7654321",
            "gender": "female",
            "nationality": "VN",
            "type": "adult",
            "infant": {"last_name": "Trần", "first_name": "Bé Na", "gender": "female"},
        },
        {"last_name": "Trần", "first_name": "An", "gender": "male", "nationality": "VN", "type": "child"},
    ]

    manifest = format_vietjet_manifest(passengers)

    assert manifest["người_lớn"] == [
        {"Họ": "Tran", "Tên": "Minh", "Hộ_chiếu": "C7654321", "Giới_tính": "nữ", "Quốc_tịch": "VN"}
    ]
    assert manifest["trẻ_em"][0]["Giới_tính"] == "nam"
    assert manifest["em_bé"] == [{"Họ": "Tran", "Tên": "Be Na", "Hộ_chiếu": "", "Giới_tính": "nữ", "Quốc_tịch": "VN"}]


def test_manifest_omits_empty_groups():
    manifest = format_vietjet_manifest([{"last_name": "Le", "first_name": "Hoa", "type": "adult"}])
    assert set(manifest) == {"người_lớn"}


def test_manifest_tolerates_loosely_typed_fields():
    manifest = format_vietjet_manifest(
        [
            {"last_name": 12345, "first_name": None, "passport": 987654, "gender": "F", "type": "adult", "infant": "yes"},
            "not a passenger",
        ]
    )

    assert manifest == {
        "người_lớn": [{"Họ": "12345", "Tên": "", "Hộ_chiếu": "987654", "Giới_tính": "nữ", "Quốc_tịch": ""}]
    }
