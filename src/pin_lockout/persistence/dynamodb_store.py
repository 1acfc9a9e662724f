"""DynamoDB key-value store for lockout state shared across processes."""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from pin_lockout.common.exceptions import PersistenceError
from pin_lockout.persistence.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class DynamoDBKeyValueStore(KeyValueStore):
    """Stores each key as one item: {pk, value, updated_at}.
    
    Values are UTF-8 JSON, kept as a string attribute so the table stays
    readable from the console.
    """
    
    DEFAULT_REGION = "us-east-1"
    PARTITION_KEY = "pk"
    
    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
        key_prefix: str = "",
    ):
        self.table_name = table_name or os.environ.get("PIN_LOCKOUT_DYNAMODB_TABLE")
        if not self.table_name:
            raise ValueError("PIN_LOCKOUT_DYNAMODB_TABLE required")
        
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.key_prefix = key_prefix
        
        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.dynamodb = session.resource("dynamodb", region_name=self.region)
        else:
            self.dynamodb = boto3.resource("dynamodb", region_name=self.region)
        
        self.table = self.dynamodb.Table(self.table_name)
        logger.info(f"DynamoDB state store initialized: {self.table_name} ({self.region})")
    
    def _pk(self, key: str) -> str:
        return f"{self.key_prefix}{key}"
    
    def get(self, key: str) -> Optional[bytes]:
        try:
            response = self.table.get_item(Key={self.PARTITION_KEY: self._pk(key)})
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"get_item failed: {e}", key=key)
        
        item = response.get("Item")
        if item is None:
            return None
        return str(item["value"]).encode("utf-8")
    
    def set(self, key: str, value: bytes) -> None:
        item: Dict[str, Any] = {
            self.PARTITION_KEY: self._pk(key),
            "value": value.decode("utf-8"),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"put_item failed: {e}", key=key)
    
    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key={self.PARTITION_KEY: self._pk(key)})
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"delete_item failed: {e}", key=key)
    
    def keys(self, prefix: str = "") -> List[str]:
        full_prefix = self._pk(prefix)
        scan_kwargs: Dict[str, Any] = {
            "FilterExpression": Attr(self.PARTITION_KEY).begins_with(full_prefix),
            "ProjectionExpression": self.PARTITION_KEY,
        }
        found: List[str] = []
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    found.append(item[self.PARTITION_KEY][len(self.key_prefix):])
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"scan failed: {e}", details={"prefix": prefix})
        return sorted(found)
