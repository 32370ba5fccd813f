from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List

class OnlineUsers(BaseModel):
    online_users: List[int]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
