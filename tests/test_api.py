import io
import zipfile

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from tradeops.main import app

client = TestClient(app)

CSV = (
    "Trade ID,Symbol,Quantity,Price,Trade Date,Counterparty,Commission,Settlement Status\n"
    "EQ-1,AAPL,100,150,2024-05-02,Goldman Sachs,45,Settled\n"
    "EQ-2,GOOG,50,1000,2024-06-03,Morgan Stanley,150,Pending\n"
    "EQ-3,MSFT,10,5000,2024-06-04,Goldman Sachs,30,Settled\n"
)


def upload(content=CSV, filename='trades.csv', **form):
    files = {'file': (filename, content.encode(), 'text/csv')}
    return client.post('/api/upload', files=files, data=form)


def test_healthz():
    assert client.get('/healthz').json() == {'ok': True}


def test_upload_detects_type_and_maps():
    res = upload()
    assert res.status_code == 200
    body = res.json()
    assert body['ok'] is True
    assert body['data_type'] == 'equity'
    assert body['row_count'] == 3
    assert body['headers'][0] == 'Trade ID'
    assert body['mapping']['counterparty'] == 'Counterparty'
    assert body['status']['required'] is False


def test_upload_rejects_unknown_type():
    res = upload(data_type='bonds')
    assert res.status_code == 400
    assert res.json()['ok'] is False


def test_mapping_update_and_process():
    token = upload().json()['token']

    bad = client.put(f'/api/upload/{token}/mapping', json={'symbol': 'Ticker'})
    assert bad.status_code == 400
    assert bad.json()['ok'] is False

    gated = client.post(f'/api/upload/{token}/process', params={'enforce_required': True})
    assert gated.status_code == 400
    assert 'Client ID' in gated.json()['error']

    res = client.put(f'/api/upload/{token}/mapping', json={'settlement_status': ''})
    assert res.status_code == 200
    assert 'settlement_status' not in res.json()['mapping']

    res = client.post(f'/api/upload/{token}/process')
    assert res.status_code == 200
    body = res.json()
    assert [r['trade_id'] for r in body['records']] == ['EQ-1', 'EQ-2', 'EQ-3']
    assert body['records'][0]['settlement_date'] == '2024-05-04'
    assert body['kpis']['total_commission_fees'] == 225.0
    assert body['kris']['commission_cost_overruns'] == 1
    # settlement status unmapped, so nothing counts as allocated
    assert body['kris']['unallocated_costs'] == 3
    assert body['summary']['total_trades'] == 3


def test_automap_switches_type():
    token = upload().json()['token']
    res = client.post(f'/api/upload/{token}/automap', params={'data_type': 'fx'})
    assert res.status_code == 200
    body = res.json()
    assert body['data_type'] == 'fx'
    assert body['mapping']['trade_id'] == 'Trade ID'
    assert body['mapping']['currency_pair'] == 'Symbol'


def test_unknown_token_is_404():
    assert client.post('/api/upload/nope/process').status_code == 404
    assert client.get('/download/nope/csv').status_code == 404


def test_downloads_after_processing():
    token = upload().json()['token']
    assert client.get(f'/download/{token}/excel').status_code == 404
    client.post(f'/api/upload/{token}/process')

    res = client.get(f'/download/{token}/csv')
    assert res.status_code == 200
    names = zipfile.ZipFile(io.BytesIO(res.content)).namelist()
    assert 'trades.csv' in names and 'broker_expense.csv' in names

    res = client.get(f'/download/{token}/excel')
    assert res.status_code == 200
    wb = load_workbook(io.BytesIO(res.content))
    assert {'Trades', 'BrokerExpense', 'FeesOverTime', 'KRI'} <= set(wb.sheetnames)
    assert wb['BrokerExpense']['A2'].value == 'Morgan Stanley'


def test_sample_template_per_type():
    res = client.get('/sample/template.xlsx', params={'data_type': 'fx'})
    assert res.status_code == 200
    ws = load_workbook(io.BytesIO(res.content))['Trades']
    assert ws['A1'].value == 'TradeID'
    assert ws['A2'].value == 'FX-0001'

    assert client.get('/sample/template.xlsx', params={'data_type': 'bonds'}).status_code == 400


def test_rejected_automap_keeps_session():
    first = upload().json()
    token = first['token']
    res = client.post(f'/api/upload/{token}/automap', params={'data_type': 'fx', 'strategy': 'fuzzy'})
    assert res.status_code == 400

    res = client.put(f'/api/upload/{token}/mapping', json={})
    body = res.json()
    assert body['data_type'] == 'equity'
    assert body['mapping'] == first['mapping']

    records = client.post(f'/api/upload/{token}/process').json()['records']
    assert {r['data_source'] for r in records} == {'equity'}
