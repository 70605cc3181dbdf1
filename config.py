# config.py
CAN_CHANNEL = 'vcan0'
CAN_INTERFACE = 'socketcan'

# IDs
ID_ECU_PHYSICAL    = 0x7E0
ID_ECU_RESPONSE    = 0x7E8
ID_APIM_PHYSICAL   = 0x7D0
ID_APIM_RESPONSE   = 0x7D8

# UDS Constants
SID_READ_DATA_BY_ID            = 0x22
SID_WRITE_DATA_BY_ID           = 0x2E
SID_IO_CONTROL_BY_ID           = 0x2F
SID_NEGATIVE_RESPONSE          = 0x7F

POSITIVE_RESPONSE_OFFSET = 0x40

# Services whose request/response carry a 16-bit DID right after the SID
DID_SERVICES = (SID_READ_DATA_BY_ID, SID_WRITE_DATA_BY_ID, SID_IO_CONTROL_BY_ID)

# ISO-TP PCI frame types (high nibble of the first byte)
PCI_SINGLE_FRAME      = 0x0
PCI_FIRST_FRAME       = 0x1
PCI_CONSECUTIVE_FRAME = 0x2
PCI_FLOW_CONTROL      = 0x3

# Reassembly / correlation
STALE_AFTER_SECONDS  = 3.0
MATCH_WINDOW_SECONDS = 5.0
RESPONSE_ID_OFFSET   = 0x8
MAX_OPEN_REQUESTS    = 500

# ISO-TP Defaults
DEFAULT_PARAMS = {
    "tx_padding": 0x55,
    "tx_data_length": 8,
    "tx_data_min_length": 8,
}

# Python-can log formats handled by can.LogReader
CAN_LOG_SUFFIXES = ('.asc', '.blf', '.csv', '.trc', '.log', '.mf4')
