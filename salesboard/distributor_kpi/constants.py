# salesboard/distributor_kpi/constants.py
"""
Constants for the Distributor KPI Module

Centralized configuration for:
- Brand / product cohort term lists
- Spreadsheet column aliases per import schema
- Seed KPI catalog
- Grouping vocabulary
- Export styles
"""

# =====================================================================
# PRODUCT CLASSIFICATION
# =====================================================================

# Non-core products, excluded from the 9 Ltr total (matched as substrings
# of the product name)
EXCLUDED_PRODUCTS_LIST = [
    'TW SHINER SPONGE',
    'CHAIN LUBE',
    'CHAIN CLEANER',
    'BRAKE CLEANER',
    'FUELINJECT',
    'ANTI RUST LUB SPRAY',
    'THROTTLEBODYCLEANER',
    'MICRO FBR CLOTH',
    'AIOHELMET CLEANER',
    'TW SHINER 3 IN 1',
]

# Exact product names, no brand check
POWER1_PRODUCTS_LIST = [
    "POWER1 4T 10W-30, 10X.9L MK",
    "POWER1 4T 10W-30, 10X1L MK",
    "POWER1 4T 15W-40, 10X1L MK",
    "POWER1 CRUISE4T 20W50 10X1.2HMK",
    "POWER1 CRUISE 4T20W-50,10X1L",
    "POWER1 ULTIMATE4T10W-40,6X1LMK",
    "POWER1CRUISE4T 15W50,4X2.5L MK",
]

ACTIV_BRANDS_INCLUDE = ['ACTIV']
ACTIV_BRANDS_EXCLUDE = ['ACTIV ESSENTIAL']

MAGNATEC_BRANDS_INCLUDE = ['MAGNATEC', 'MAGNTEC SUV', 'MAGNATEC DIESEL']

CRB_BRANDS_INCLUDE = ['CRB TURBOMAX']

AUTOCARE_BRANDS_INCLUDE = ['AUTO CARE EXTERIOR', 'AUTO CARE MAINTENANCE']

# Cohort table: key -> classification rule data
COHORT_DEFINITIONS = {
    "activ": {
        "field": "brand_name",
        "include": ACTIV_BRANDS_INCLUDE,
        "exclude": ACTIV_BRANDS_EXCLUDE,
        "match_mode": "contains",
    },
    "magnatec": {
        "field": "brand_name",
        "include": MAGNATEC_BRANDS_INCLUDE,
        "exclude": [],
        "match_mode": "contains",
    },
    "crb_turbomax": {
        "field": "brand_name",
        "include": CRB_BRANDS_INCLUDE,
        "exclude": [],
        "match_mode": "contains",
    },
    "autocare": {
        "field": "brand_name",
        "include": AUTOCARE_BRANDS_INCLUDE,
        "exclude": [],
        "match_mode": "contains",
    },
    "power1": {
        "field": "product_name",
        "include": POWER1_PRODUCTS_LIST,
        "exclude": [],
        "match_mode": "exactList",
    },
}

MATCH_MODES = ('contains', 'exactList')

# =====================================================================
# BUSINESS LOGIC SETTINGS
# =====================================================================

BILLING_THRESHOLD_LITERS = 9.0
QUALIFICATION_THRESHOLD_LITERS = 5.0
TOP_CUSTOMERS_LIMIT = 10

UNKNOWN_LABEL = "Unknown"
UNCLASSIFIED_BRAND_LABEL = "Not Classified"

# Lookback window selectable from the dashboard (current month and two before)
MIN_MONTH_OFFSET = -2
MAX_MONTH_OFFSET = 0

RECENT_INVOICE_DAYS = 7

# =====================================================================
# GROUPING / AGGREGATION VOCABULARY
# =====================================================================

GROUPING_FIELDS = [
    'sales_exec_name',
    'customer',
    'customer_code',
    'customer_name',
    'brand_name',
    'master_brand_name',
    'product_name',
    'week',
    'document_no',
    'state_name',
    'district_name',
]

# Fields that identify a customer; blank values can never qualify
CUSTOMER_FIELDS = ('customer', 'customer_code', 'customer_name')

METRICS = ('sum', 'count', 'distinctCount')
MEASURES = ('volume', 'value')
THRESHOLD_OPERATORS = ('>=', '<')
KPI_KINDS = ('aggregate', 'unbilled')

# =====================================================================
# IMPORT SCHEMAS (ordered alias lists per canonical field)
# =====================================================================

INVOICE_COLUMNS = {
    "document_no": ["Invoice No", "Invoice Number"],
    "document_date": ["Invoice Date", "Date"],
    "customer_code": ["Customer Code"],
    "customer_name": ["Customer Name"],
    "sales_exec_name": ["Sales Executive Name", "Sales Executive"],
    "master_brand_name": ["Master Brand Name"],
    "brand_name": ["Product Brand Name"],
    "product_name": ["Product Name"],
    "volume": ["Product Volume", "Volume"],
    "value": ["Total Value incl VAT/GST", "Total Value"],
    "state_name": ["State Name"],
    "district_name": ["District Name"],
    "fiscal_year": ["Fiscal Year"],
}

ORDER_COLUMNS = {
    "document_no": ["SO No", "Order No"],
    "document_date": ["SO Date", "Order Date"],
    "customer_code": ["Customer Code"],
    "customer_name": ["Customer Name"],
    "sales_exec_name": ["DSR Name", "Sales Executive"],
    "product_name": ["Product Name"],
    "volume": ["Quantity"],
    "status": ["Status"],
}

STOCK_COLUMNS = {
    "product_code": ["Product Code", "Item Code", "Material Code", "SKU Code"],
    "product_name": ["Product Name", "Item Name", "Material Name", "SKU Name"],
    "quantity": ["Qty(EA/Ltrs/Kg)", "Qty (EA/Ltrs/Kg)", "Quantity", "Qty", "Closing Qty"],
    "pack_size": ["Pack/Size", "Pack Size", "Packsize"],
    "brand": ["Brand", "Brand Name"],
}

CUSTOMER_COLUMNS = {
    "code": ["Customer Code"],
    "name": ["Customer Name"],
    "assigned_sales_exec": ["Sales Executive"],
    "city": ["City"],
    "address": ["Address"],
    "phone": ["Phone", "Mobile"],
    "gst": ["GST", "GSTIN"],
    "category": ["Category"],
}

AGREEMENT_COLUMNS = {
    "customer_code": ["Customer Code"],
    "customer_name": ["Customer Name"],
    "start_date": ["Agreement Start Date", "Start Date"],
    "end_date": ["Agreement End Date", "End Date"],
    "target_volume": ["Target Volume", "Target"],
}

IMPORT_SCHEMAS = {
    "invoice": {
        "columns": INVOICE_COLUMNS,
        "required": ["document_no", "document_date"],
        "dates": ["document_date"],
        "numbers": ["volume", "value"],
    },
    "order": {
        "columns": ORDER_COLUMNS,
        "required": ["document_no", "document_date"],
        "dates": ["document_date"],
        "numbers": ["volume"],
    },
    "stock": {
        "columns": STOCK_COLUMNS,
        "required": ["product_name"],
        "dates": [],
        "numbers": ["quantity"],
    },
    "customer": {
        "columns": CUSTOMER_COLUMNS,
        "required": ["code", "name"],
        "dates": [],
        "numbers": [],
    },
    "agreement": {
        "columns": AGREEMENT_COLUMNS,
        "required": ["customer_code", "start_date", "end_date"],
        "dates": ["start_date", "end_date"],
        "numbers": ["target_volume"],
    },
}

# Spreadsheet serial dates count days from this epoch
EXCEL_EPOCH = (1899, 12, 30)
# Serial day of 9999-12-31
MAX_SERIAL_DAY = 2958465

# Datasets replaced wholesale on upload (invoices append)
REPLACE_ON_UPLOAD = ('order', 'stock', 'customer')

DEFAULT_ORDER_STATUS = "Open"

# =====================================================================
# SEED KPI CATALOG
# =====================================================================

SEED_KPIS = [
    {
        "short_key": "volumeBySE",
        "display_name": "Volume by Sales Exec",
        "grouping_keys": ["sales_exec_name"],
        "metric": "sum",
        "measure": "volume",
        "drilldown_key": "customer",
        "icon_name": "BarChart3",
        "unit": "Ltr",
        "display_order": 1,
    },
    {
        "short_key": "activCount",
        "display_name": "'Activ' Customer Count",
        "grouping_keys": ["sales_exec_name"],
        "cohort": "activ",
        "metric": "distinctCount",
        "distinct_field": "customer",
        "drilldown_key": "customer",
        "icon_name": "Users",
        "unit": "customers",
        "display_order": 2,
    },
    {
        "short_key": "power1Count",
        "display_name": "Power1 Customers >= 5L",
        "grouping_keys": ["sales_exec_name", "customer"],
        "cohort": "power1",
        "metric": "count",
        "threshold": {"op": ">=", "value": QUALIFICATION_THRESHOLD_LITERS},
        "icon_name": "TrendingUp",
        "unit": "customers",
        "display_order": 3,
    },
    {
        "short_key": "magnatecCount",
        "display_name": "Magnatec Customers >= 5L",
        "grouping_keys": ["sales_exec_name", "customer"],
        "cohort": "magnatec",
        "metric": "count",
        "threshold": {"op": ">=", "value": QUALIFICATION_THRESHOLD_LITERS},
        "icon_name": "TrendingUp",
        "unit": "customers",
        "display_order": 4,
    },
    {
        "short_key": "crbCount",
        "display_name": "CRB Turbomax Customers >= 5L",
        "grouping_keys": ["sales_exec_name", "customer"],
        "cohort": "crb_turbomax",
        "metric": "count",
        "threshold": {"op": ">=", "value": QUALIFICATION_THRESHOLD_LITERS},
        "icon_name": "TrendingUp",
        "unit": "customers",
        "display_order": 5,
    },
    {
        "short_key": "highVolCount",
        "display_name": "High-Volume Core Customers (>= 9L)",
        "grouping_keys": ["sales_exec_name", "customer"],
        "core_products_only": True,
        "metric": "count",
        "threshold": {"op": ">=", "value": BILLING_THRESHOLD_LITERS},
        "icon_name": "TrendingUp",
        "unit": "customers",
        "display_order": 6,
    },
    {
        "short_key": "autocareCount",
        "display_name": "Autocare Customers (>= 5L)",
        "grouping_keys": ["sales_exec_name", "customer"],
        "cohort": "autocare",
        "metric": "count",
        "threshold": {"op": ">=", "value": QUALIFICATION_THRESHOLD_LITERS},
        "icon_name": "Package",
        "unit": "customers",
        "display_order": 7,
    },
    {
        "short_key": "weeklySales",
        "display_name": "Weekly Sales Volume",
        "grouping_keys": ["week"],
        "metric": "sum",
        "measure": "volume",
        "drilldown_key": "customer",
        "icon_name": "BarChart3",
        "unit": "Ltr",
        "display_order": 8,
    },
    {
        "short_key": "volByBrand",
        "display_name": "Volume by Brand",
        "grouping_keys": ["brand_name"],
        "metric": "sum",
        "measure": "volume",
        "drilldown_key": "product_name",
        "icon_name": "Package",
        "unit": "Ltr",
        "display_order": 9,
    },
    {
        "short_key": "topCustomers",
        "display_name": "Top 10 Customers by Value",
        "grouping_keys": ["customer"],
        "metric": "sum",
        "measure": "value",
        "limit": TOP_CUSTOMERS_LIMIT,
        "drilldown_key": "product_name",
        "icon_name": "FileText",
        "unit": "INR",
        "display_order": 10,
    },
    {
        "short_key": "unbilled",
        "display_name": "Unbilled Customers (< 9L)",
        "kind": "unbilled",
        "grouping_keys": ["sales_exec_name", "customer"],
        "core_products_only": True,
        "metric": "count",
        "threshold": {"op": "<", "value": BILLING_THRESHOLD_LITERS},
        "icon_name": "AlertCircle",
        "unit": "customers",
        "display_order": 11,
    },
]

# App settings that override the seed thresholds and limits
SEED_THRESHOLD_SETTINGS = {
    "power1Count": "QUALIFICATION_THRESHOLD_LITERS",
    "magnatecCount": "QUALIFICATION_THRESHOLD_LITERS",
    "crbCount": "QUALIFICATION_THRESHOLD_LITERS",
    "autocareCount": "QUALIFICATION_THRESHOLD_LITERS",
    "highVolCount": "BILLING_THRESHOLD_LITERS",
    "unbilled": "BILLING_THRESHOLD_LITERS",
}
SEED_LIMIT_SETTINGS = {
    "topCustomers": "TOP_CUSTOMERS_LIMIT",
}

# =====================================================================
# ACCESS
# =====================================================================

ALL_ACCESS = "ALL"

# =====================================================================
# EXPORT SETTINGS
# =====================================================================

EXCEL_STYLES = {
    "header_fill_color": "1f77b4",
    "header_font_color": "FFFFFF",
    "volume_format": '#,##0.00',
    "count_format": '0',
    "percent_format": '0.0"%"',
    "date_format": 'YYYY-MM-DD',
}

INSERT_BATCH_SIZE = 500
