from .api import router as api
from .serve import router as serve
from .uploads import router as uploads
