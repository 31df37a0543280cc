from PIL import Image

from chat_printer.printing.bitmap import count_dark, encode_row, encode_rows, image_to_rows, pack_row, rows_to_image
from chat_printer.printing.job import PrintJob


def test_all_dark_row_of_sixteen():
    packed, left, right = pack_row([0] * 16)
    assert packed == b"\xFF\xFF"
    assert (left, right) == (8, 8)


def test_row_header_layout():
    assert encode_row(3, [0] * 16) == bytes([0x00, 0x03, 8, 8, 0x00, 0x01, 0xFF, 0xFF])


def test_bits_are_msb_first_and_split_at_midpoint():
    pixels = [255] * 16
    pixels[0] = 0
    pixels[15] = 10
    packed, left, right = pack_row(pixels)
    assert packed == b"\x80\x01"
    assert (left, right) == (1, 1)


def test_partial_trailing_byte_is_padded():
    packed, left, right = pack_row([0] * 12)
    assert packed == b"\xFF\xF0"
    assert (left, right) == (6, 6)


def test_threshold_is_128():
    packed, _, _ = pack_row([127, 128] + [255] * 6)
    assert packed == b"\x80"


def test_encode_rows_numbers_each_row():
    rows = [bytes([255] * 8)] * 3
    payloads = list(encode_rows(rows, 8))
    assert [p[:2] for p in payloads] == [b"\x00\x00", b"\x00\x01", b"\x00\x02"]


def test_image_rows_round_trip():
    img = Image.new("L", (16, 4), 255)
    img.putpixel((3, 2), 0)
    rows = image_to_rows(img)
    assert len(rows) == 4
    assert rows[2][3] == 0
    assert count_dark(rows) == 1
    assert rows_to_image(rows, 16, 4).tobytes() == img.tobytes()


def test_print_job_from_image_is_a_copy():
    img = Image.new("L", (8, 2), 255)
    job = PrintJob.from_image(img, quantity=2)
    img.putpixel((0, 0), 0)
    assert count_dark(job.rows) == 0
    assert (job.width, job.height, job.quantity) == (8, 2, 2)
    assert job.id
