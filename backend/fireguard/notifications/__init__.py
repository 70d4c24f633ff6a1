# backend/fireguard/notifications/__init__.py

"""
通知レイヤ用モジュール群。

構成:
- schemas: LogEntry / NotificationContent / PushNotification
- composer: 分類文字列 → タイトル・本文・data の組み立て（純粋関数）
- service: FCM への送信（DeliveryClient と Sender 実装）
- factory: 設定に応じた DeliveryClient の生成
"""
