import os
import sys

import uvicorn

if __name__ == "__main__":
    # Ensure usage of the current directory for imports
    sys.path.append(os.path.dirname(os.path.abspath(__file__)))

    uvicorn.run("estate_commissions.main:app", host="0.0.0.0", port=8000, reload=True)
