"""Creates the empty products table and the image storage bucket."""
import pandas as pd

from swatch_catalog.config import settings
from swatch_catalog.database import db
from swatch_catalog.models.product import PRODUCT_COLUMNS
from swatch_catalog.storage import storage


storage.bucket_dir.mkdir(parents=True, exist_ok=True)
print(f'Storage bucket ready at {storage.bucket_dir}')

path = db._file_path('products')
if not path.exists():
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(columns=PRODUCT_COLUMNS)
    if path.suffix.lower() == '.xlsx':
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    print(f'Created {path}')
else:
    print(f'{path} already exists ({settings.PRODUCTS_FILE})')
