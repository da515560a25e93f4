from typing import List

from fastapi import APIRouter, Depends

from backoffice.api.dependencies import get_taxonomy
from backoffice.middleware.security import any_role
from backoffice.services.taxonomy import DataKey, SelectItem, TaxonomyStore

router = APIRouter(prefix="/data", tags=["Data"], dependencies=[Depends(any_role)])


@router.get("/{key}")
def get_data(key: DataKey, taxonomy: TaxonomyStore = Depends(get_taxonomy)) -> List[SelectItem]:
    """Reference list used by the song and event forms."""
    return taxonomy.get(key)
