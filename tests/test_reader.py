import io

from openpyxl import Workbook

from tradeops.core.normalizer import normalize_rows
from tradeops.parsing.mapper import build_mapping
from tradeops.parsing.reader import analyze_rows, read_rows
from tradeops.parsing.schema import EQUITY_FIELDS


def xlsx_bytes(sheets):
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets:
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio


def test_excel_prefers_trades_sheet():
    bio = xlsx_bytes([
        ('Notes', [['Comment'], ['ignore me']]),
        ('Trades', [['TradeID ', 'NotionalAmount'], ['FX-1', 1000], [None, None], ['FX-2', None]]),
    ])
    rows = read_rows(bio, 'upload.xlsx')
    assert rows == [
        {'TradeID': 'FX-1', 'NotionalAmount': 1000},
        {'TradeID': 'FX-2', 'NotionalAmount': None},
    ]


def test_excel_falls_back_to_first_sheet():
    bio = xlsx_bytes([('Sheet A', [['Trade ID'], ['EQ-1']]), ('Sheet B', [['Other'], ['x']])])
    assert read_rows(bio) == [{'Trade ID': 'EQ-1'}]


def test_csv_and_analysis():
    content = 'Trade ID,Price\n' + ''.join(f'T{i},{i}\n' for i in range(8))
    rows = read_rows(io.BytesIO(content.encode()), 'trades.CSV')
    analysis = analyze_rows(rows)
    assert analysis.headers == ['Trade ID', 'Price']
    assert analysis.row_count == 8
    assert len(analysis.sample) == 5
    assert analysis.sample[0] == {'Trade ID': 'T0', 'Price': '0'}

    empty = analyze_rows([])
    assert empty.headers == [] and empty.row_count == 0


def test_csv_cells_keep_identifiers_as_written():
    content = 'Trade ID,Client ID,Quantity\n1001,007,5\n,008,6\n1003,009,7\n'
    rows = read_rows(io.BytesIO(content.encode()), 'trades.csv')
    assert rows[0] == {'Trade ID': '1001', 'Client ID': '007', 'Quantity': '5'}
    assert rows[1]['Trade ID'] is None

    mapping = build_mapping(EQUITY_FIELDS, rows[0].keys())
    records = normalize_rows(rows, mapping)
    assert [(r.trade_id, r.client_id, r.quantity) for r in records] == [
        ('1001', '007', 5.0),
        ('TRADE-000002', '008', 6.0),
        ('1003', '009', 7.0),
    ]


def test_excel_cells_are_not_retyped():
    bio = xlsx_bytes([('Trades', [['Trade ID', 'Client ID'], [1001, '007'], [None, '008']])])
    rows = read_rows(bio, 'trades.xlsx')
    assert rows[0] == {'Trade ID': 1001, 'Client ID': '007'}
    assert rows[1] == {'Trade ID': None, 'Client ID': '008'}


def test_headers_colliding_after_trim_are_kept_apart():
    content = 'Trade ID,Trade ID ,Price\nA,B,1\n'
    rows = read_rows(io.BytesIO(content.encode()), 'trades.csv')
    assert rows == [{'Trade ID': 'A', 'Trade ID.1': 'B', 'Price': '1'}]
