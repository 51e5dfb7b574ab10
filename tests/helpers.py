"""Test data and assertion helpers."""

FILE_URL = "https://api.telegram.org/file/bot123:abc/photos/file_1.jpg"

PASSPORT_FIELDS = {
    "Name": "JOHN",
    "Surname": "DOE",
    "Date of Birth": "1990-01-01",
    "Passport Number": "AB123456",
    "Date of Issue": "2020-01-01",
    "Date of Expiry": "2030-01-01",
}

LICENSE_FIELDS = {
    "First Name": "JOHN",
    "Last Name": "DOE",
    "Date of Birth": "1990-01-01",
    "License Number": "DL-998877",
    "Issued Date": "2019-05-05",
    "Expiry Date": "2029-05-05",
    "Country": "US",
    "Category": "B",
}


def sent_texts(transport) -> list[str]:
    """Texts passed to transport.send_message, in order."""
    return [call.args[1] for call in transport.send_message.call_args_list]
